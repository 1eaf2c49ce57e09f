r"""Build-repair loop as an explicit state machine.

    assembled -> build_running -> build_passed
                              \-> build_failed -> classify_error -> quick_fix_applied -> build_running
                                              \                  \-> ai_fix_requested  -> build_running
                                               \-> exhausted

An attempt is one build invocation. The loop never runs more than
`max_attempts` builds; a known failure signature is fixed deterministically
before the model is asked, and each signature's quick fix is tried once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from utils.llm import LLMError
from agents.build_runner import clear_paths
from agents.patch_composer import extract_error_summary, failing_files
from config.defaults import DEFAULTS
from core.errors import GenerationError, RunCancelled
from core.quick_fixes import apply_quick_fix, classify_failure
from core.state import BuildReport, RepairAttempt
from core.validator import ImportExportValidator

log = logging.getLogger(__name__)

ASSEMBLED = "assembled"
BUILD_RUNNING = "build_running"
BUILD_PASSED = "build_passed"
BUILD_FAILED = "build_failed"
CLASSIFY_ERROR = "classify_error"
QUICK_FIX_APPLIED = "quick_fix_applied"
AI_FIX_REQUESTED = "ai_fix_requested"
EXHAUSTED = "exhausted"

TERMINAL_STATES = {BUILD_PASSED, EXHAUSTED}


@dataclass
class RepairOutcome:
    files: dict[str, str]
    success: bool
    state: str
    attempts: list[RepairAttempt] = field(default_factory=list)
    reports: list[BuildReport] = field(default_factory=list)
    feedback: str | None = None


@dataclass
class _Run:
    files: dict[str, str]
    notes: list[str]
    builds: int = 0
    report: BuildReport | None = None
    signature: str | None = None
    tried: set[str] = field(default_factory=set)          # quick-fix signatures already attempted
    written: set[str] = field(default_factory=set)        # paths on disk from the last build
    attempts: list[RepairAttempt] = field(default_factory=list)
    reports: list[BuildReport] = field(default_factory=list)


class RepairLoop:
    """Drives build, classify, fix until the build passes or attempts run out."""

    def __init__(self, builder, fixer, composer, template_files, work_dir,
                 stack="nextjs", max_attempts=None, cancel_event=None):
        self.builder = builder
        self.fixer = fixer
        self.composer = composer
        self.template_files = template_files
        self.work_dir = work_dir
        self.stack = stack
        self.max_attempts = max_attempts or DEFAULTS["max_repair_attempts"]
        self.cancel_event = cancel_event
        self.validator = ImportExportValidator(stack)

    def run(self, files, notes=()) -> RepairOutcome:
        run = _Run(files=dict(files), notes=list(notes))
        state = ASSEMBLED
        while state not in TERMINAL_STATES:
            if self.cancel_event is not None and self.cancel_event.is_set():
                raise RunCancelled(f"Cancelled during repair ({state}, {run.builds} build(s) run)")
            state = self.step(state, run)

        outcome = RepairOutcome(
            files=run.files,
            success=state == BUILD_PASSED,
            state=state,
            attempts=run.attempts,
            reports=run.reports,
        )
        if not outcome.success:
            outcome.feedback = self._feedback(run)
        return outcome

    def step(self, state, run) -> str:
        """Perform the work of `state` and return the next state."""
        if state == ASSEMBLED:
            return BUILD_RUNNING

        if state == BUILD_RUNNING:
            if run.builds >= self.max_attempts:
                return EXHAUSTED
            run.builds += 1
            run.report = self.builder.run(run.files, self.work_dir, previous=run.written)
            run.written = set(run.files)
            run.reports.append(run.report)
            outcome = "passed" if run.report.success else "failed"
            self._record(run, "build", outcome, f"exit code {run.report.exit_code}")
            return BUILD_PASSED if run.report.success else BUILD_FAILED

        if state == BUILD_FAILED:
            return EXHAUSTED if run.builds >= self.max_attempts else CLASSIFY_ERROR

        if state == CLASSIFY_ERROR:
            # Each signature gets one try; the first untried one that edits something wins.
            while True:
                match = classify_failure(run.report.output, skip=run.tried)
                run.signature = match[0] if match else None
                if run.signature is None:
                    return AI_FIX_REQUESTED
                run.tried.add(run.signature)
                fix = apply_quick_fix(run.signature, run.files, run.report.output, self.template_files)
                if fix is None or (fix.files == run.files and not fix.clear):
                    self._record(run, "quick_fix", "not_applicable", run.signature)
                    continue
                run.files = fix.files
                if fix.clear:
                    clear_paths(self.work_dir, fix.clear)
                self._record(run, "quick_fix", "applied", fix.description)
                return QUICK_FIX_APPLIED

        if state == QUICK_FIX_APPLIED:
            return BUILD_RUNNING

        if state == AI_FIX_REQUESTED:
            self._ai_fix(run)
            return BUILD_RUNNING

        raise ValueError(f"Unknown repair state: {state}")

    def _ai_fix(self, run):
        validation = self.validator.validate(run.files)
        instructions = self.composer.run(run.report, validation, run.notes)
        paths = failing_files(run.files, run.report, validation, self.stack)
        try:
            artifacts = self.fixer.run(run.files, instructions, paths)
        except (LLMError, GenerationError) as e:
            self._record(run, "ai_fix", "error", str(e))
            return
        if not artifacts:
            self._record(run, "ai_fix", "no_changes")
            return

        files = dict(run.files)
        for a in artifacts:
            if a.action == "delete":
                files.pop(a.path, None)
            else:
                files[a.path] = a.content
        for path, content in self.template_files.items():
            files.setdefault(path, content)
        run.files = files
        self._record(run, "ai_fix", "applied", ", ".join(a.path for a in artifacts))

    def _record(self, run, strategy, outcome, detail=""):
        attempt = RepairAttempt(number=run.builds, strategy=strategy, outcome=outcome, detail=detail)
        run.attempts.append(attempt)
        log.info("Repair attempt %d/%d: %s %s%s", attempt.number, self.max_attempts,
                 strategy, outcome, f" ({detail})" if detail else "")

    def _feedback(self, run):
        parts = [f"Build still failing after {run.builds} attempt(s)."]
        if run.report is not None:
            parts.append(extract_error_summary(run.report.output))
        validation = self.validator.validate(run.files)
        if not validation.valid:
            parts.append("Import/export problems:\n" + validation.to_feedback())
        return "\n\n".join(parts)
