"""Main pipeline orchestrator — requirement -> plan -> generate -> validate -> build/repair -> assemble."""

import logging
import os
import tempfile
from concurrent.futures import ThreadPoolExecutor

from config.defaults import DEFAULTS
from core.assembler import SynthesisResult, assemble, combine_feedback
from core.dag import ready_tasks, topological_order, transitive_dependencies, transitive_dependents
from core.errors import GenerationError, RunCancelled
from core.repair import RepairLoop
from core.state import PipelineState
from core.templates import get_template_files
from core.validator import ImportExportValidator
from agents.requirements import RequirementCompiler
from agents.planner import PlannerAgent
from agents.generator import GeneratorAgent
from agents.build_runner import BuildRunner
from agents.fixer import BuildFixerAgent
from agents.patch_composer import PatchComposer
from utils.folder_naming import extract_project_name

log = logging.getLogger(__name__)


class Orchestrator:
    """Runs one synthesis: compile requirements, plan, generate, validate, repair.

    Only this class mutates the project state, and only after a task or fix
    step has fully succeeded. A run can be abandoned between any two steps
    through `cancel_event` (a threading.Event); RunCancelled is raised and the
    committed state is left as it was.
    """

    def __init__(self, stack=None):
        self.stack = stack or DEFAULTS["stack"]
        self.requirements = RequirementCompiler()
        self.planner = PlannerAgent(self.stack)
        self.generator = GeneratorAgent()
        self.validator = ImportExportValidator(self.stack)
        self.builder = BuildRunner(self.stack)
        self.fixer = BuildFixerAgent()
        self.patch_composer = PatchComposer()

    def create_state(self, request, output_dir=None, project_name=None):
        name = project_name or extract_project_name(request)
        template_files = get_template_files(self.stack, name)
        return PipelineState(
            request=request,
            stack=self.stack,
            project_name=name,
            template_files=template_files,
            files=dict(template_files),
            output_dir=output_dir or "",
        )

    def compile_requirements(self, state: PipelineState) -> PipelineState:
        state.requirements = self.requirements.run(state.request)
        log.info("Requirements: %d feature(s)", len(state.requirements.features))
        return state

    def plan(self, state: PipelineState) -> PipelineState:
        state.status = "planning"
        state.tasks = self.planner.run(state.requirements)
        return state

    def generate(self, state: PipelineState, cancel_event=None, abort_on_error=None, workers=None):
        """Generate every task in dependency order, committing each result on success.

        With workers > 1, ready tasks are generated concurrently against the
        same committed snapshot and committed in topological order.
        """
        if abort_on_error is None:
            abort_on_error = DEFAULTS["abort_on_generation_error"]
        workers = max(1, workers or DEFAULTS["generation_workers"])
        state.status = "generating"
        order = topological_order(state.tasks)

        while True:
            _check_cancelled(cancel_event, "before the next task")
            ready_ids = {t.id for t in ready_tasks(state.tasks)}
            batch = [t for t in order if t.id in ready_ids][:workers]
            if not batch:
                break

            snapshot = dict(state.files)
            for task in batch:
                task.advance("in_progress")
                log.info("Generating %s: %s", task.id, task.name)
            results = self._run_batch(batch, snapshot, state, workers)

            for task, result in zip(batch, results):
                if isinstance(result, GenerationError):
                    task.advance("failed")
                    state.errors.append(str(result))
                    log.error("%s", result)
                    if abort_on_error:
                        state.status = "failed"
                        raise result
                    self._fail_dependents(state, task.id)
                    continue
                state.commit(result.artifacts)
                state.notes.extend(result.notes)
                task.advance("completed")
        return state

    def _run_batch(self, batch, snapshot, state, workers):
        def run_one(task):
            context = [p for dep in transitive_dependencies(state.tasks, task.id)
                       for p in _task_files(state.tasks, dep)]
            try:
                return self.generator.run(task, snapshot, state.requirements, context)
            except GenerationError as e:
                return e

        if workers == 1 or len(batch) == 1:
            return [run_one(t) for t in batch]
        with ThreadPoolExecutor(max_workers=min(workers, len(batch))) as pool:
            return list(pool.map(run_one, batch))

    def _fail_dependents(self, state, task_id):
        by_id = {t.id: t for t in state.tasks}
        for dep_id in transitive_dependents(state.tasks, task_id):
            task = by_id[dep_id]
            if task.status == "pending":
                task.advance("failed")
                state.errors.append(f"[{dep_id}] skipped: depends on failed task {task_id}")

    def validate(self, state: PipelineState) -> PipelineState:
        state.status = "validating"
        state.files = assemble(state.template_files, state.files)
        state.validation = self.validator.validate(state.files)
        if state.validation.valid:
            log.info("Import/export validation passed")
        else:
            log.warning("Import/export validation found %d problem(s)", len(state.validation.errors))
        return state

    def repair(self, state: PipelineState, work_dir, cancel_event=None):
        state.status = "building"
        loop = RepairLoop(
            builder=self.builder,
            fixer=self.fixer,
            composer=self.patch_composer,
            template_files=state.template_files,
            work_dir=work_dir,
            stack=self.stack,
            cancel_event=cancel_event,
        )
        outcome = loop.run(state.files, state.notes)
        state.files = outcome.files
        state.build_reports.extend(outcome.reports)
        state.repair_attempts.extend(outcome.attempts)
        return outcome

    def write_files(self, state: PipelineState):
        """Write final files to disk."""
        if not state.output_dir:
            return []

        os.makedirs(state.output_dir, exist_ok=True)
        root = os.path.realpath(state.output_dir)
        written = []
        for path, content in state.files.items():
            resolved = os.path.realpath(os.path.join(root, path.lstrip("/")))
            if not resolved.startswith(root + os.sep):
                raise ValueError(f"Path escapes output directory: {path}")
            os.makedirs(os.path.dirname(resolved), exist_ok=True)
            with open(resolved, "w", encoding="utf-8") as fp:
                fp.write(content)
            written.append(path)
        return written

    def synthesize(self, requirement, build=True, output_dir=None, cancel_event=None,
                   abort_on_error=None) -> SynthesisResult:
        """Turn a requirement into a project.

        Raises PlanningError when no valid plan can be made, GenerationError
        when a task fails under the abort policy, RunCancelled on cancellation.
        Otherwise always returns the best available files; feedback is None
        only when validation and the build both succeeded.
        """
        state = self.create_state(requirement, output_dir=output_dir)
        self.compile_requirements(state)
        _check_cancelled(cancel_event, "after requirements")
        self.plan(state)
        self.generate(state, cancel_event=cancel_event, abort_on_error=abort_on_error)
        self.validate(state)
        _check_cancelled(cancel_event, "after validation")

        repair_feedback = None
        if build:
            if output_dir:
                outcome = self.repair(state, output_dir, cancel_event=cancel_event)
            else:
                with tempfile.TemporaryDirectory(prefix="synth_build_") as tmpdir:
                    outcome = self.repair(state, tmpdir, cancel_event=cancel_event)
            repair_feedback = outcome.feedback
            state.files = assemble(state.template_files, state.files)
            state.validation = self.validator.validate(state.files)

        failed = [t.id for t in state.tasks if t.status == "failed"]
        feedback = combine_feedback(
            ("Tasks not generated:\n" + "\n".join(f"- {e}" for e in state.errors)) if failed else None,
            ("Import/export problems:\n" + state.validation.to_feedback())
            if not state.validation.valid and repair_feedback is None else None,
            repair_feedback,
        )

        self.write_files(state)
        state.status = "done"
        log.info("Synthesis finished: %d file(s), %s", len(state.files),
                 "no feedback" if feedback is None else "feedback attached")
        return SynthesisResult(files=state.files, feedback=feedback, tasks=state.tasks)


def _task_files(tasks, task_id):
    for t in tasks:
        if t.id == task_id:
            return t.files
    return []


def _check_cancelled(cancel_event, where):
    if cancel_event is not None and cancel_event.is_set():
        raise RunCancelled(f"Run cancelled {where}")
