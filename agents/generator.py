"""Generator agent — produces the files for one planned task."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from utils.llm import LLMError, MalformedResponse, call_llm, parse_files
from agents.planner import normalize_path
from core.directives import enforce_directives
from core.errors import GenerationError
from core.source_parser import is_code_file, parse_module
from core.state import Artifact, RequirementsDocument, Task

_PROMPT_FILE = os.path.join(os.path.dirname(__file__), "prompts", "generator.txt")

log = logging.getLogger(__name__)

_ACTIONS = ("create", "update", "delete")


def _load_prompt():
    with open(_PROMPT_FILE) as f:
        return f.read()


@dataclass
class TaskOutput:
    task_id: str
    artifacts: list[Artifact]
    description: str = ""
    fixes: list[str] = field(default_factory=list)      # directive edits applied
    notes: list[str] = field(default_factory=list)      # directive violations left as-is


def describe_exports(files):
    """One line per code file: what it exports. Lets the model match import names."""
    lines = []
    for path in sorted(files):
        if not is_code_file(path):
            continue
        summary = parse_module(path, files[path])
        parts = []
        if summary.has_default_export:
            parts.append(f"default {summary.default_name or '(anonymous)'}")
        if summary.named_exports:
            parts.append("named " + ", ".join(sorted(summary.named_exports)))
        lines.append(f"  {path}: {'; '.join(parts) or 'no exports'}")
    return "\n".join(lines)


def parse_artifacts(result, existing_paths):
    """Turn a parsed model reply into Artifacts. Raises GenerationError if malformed."""
    if isinstance(result, dict):
        raw_files = result.get("files")
    elif isinstance(result, list):
        raw_files = result
    else:
        raw_files = None
    if not isinstance(raw_files, list) or not raw_files:
        raise GenerationError("Response has no 'files' list")

    artifacts = []
    for raw in raw_files:
        if not isinstance(raw, dict):
            raise GenerationError("File entry is not an object")
        path, content = raw.get("path"), raw.get("content")
        if not isinstance(path, str) or not path.strip():
            raise GenerationError("File entry has no path")
        try:
            path = normalize_path(path)
        except ValueError as e:
            raise GenerationError(str(e)) from None
        action = str(raw.get("action") or ("update" if path in existing_paths else "create")).lower()
        if action not in _ACTIONS:
            raise GenerationError(f"{path}: unknown action '{action}'")
        if action != "delete" and not isinstance(content, str):
            raise GenerationError(f"{path}: file entry has no content")
        artifacts.append(Artifact(path=path, content=content or "", action=action))
    return artifacts


class GeneratorAgent:
    """Generates the artifacts for one task against a read-only project snapshot."""

    name = "generator"

    def run(self, task: Task, snapshot: dict[str, str], requirements: RequirementsDocument,
            context_paths=()) -> TaskOutput:
        user_message = self._build_message(task, snapshot, requirements, context_paths)
        try:
            result = call_llm(_load_prompt(), user_message, response_format="json")
        except MalformedResponse as e:
            # Fall back to fenced code blocks: ```tsx src/components/Counter.tsx
            blocks = parse_files(e.raw)
            if not blocks:
                raise GenerationError(f"Unparseable response: {e}", task.id) from e
            result = {"files": [{"path": p, "content": c} for p, c in blocks]}
        except LLMError as e:
            raise GenerationError(f"Model call failed: {e}", task.id) from e

        try:
            artifacts = parse_artifacts(result, snapshot)
        except GenerationError as e:
            raise GenerationError(str(e), task.id) from e

        claimed = set(task.files)
        outside = sorted({a.path for a in artifacts} - claimed)
        if outside:
            raise GenerationError(f"Response declares files outside the task: {', '.join(outside)}", task.id)
        missing = [p for p in task.files if p not in {a.path for a in artifacts}]
        if missing:
            raise GenerationError(f"Response is missing claimed files: {', '.join(missing)}", task.id)

        output = TaskOutput(
            task_id=task.id,
            artifacts=[],
            description=str(result.get("description", "")) if isinstance(result, dict) else "",
        )
        by_path = {}
        for a in artifacts:
            if a.action != "delete":
                enforced = enforce_directives(a.path, a.content)
                a = Artifact(path=a.path, content=enforced.content, action=a.action)
                output.fixes.extend(enforced.fixes)
                output.notes.extend(enforced.notes)
            by_path[a.path] = a
        output.artifacts = [by_path[p] for p in task.files]

        for fix in output.fixes:
            log.info("[%s] directive fix: %s", task.id, fix)
        for note in output.notes:
            log.warning("[%s] directive violation: %s", task.id, note)
        return output

    def _build_message(self, task, snapshot, requirements, context_paths):
        parts = [
            f"TASK: {task.name}",
            f"DESCRIPTION: {task.description}",
            f"FILES TO CREATE/UPDATE: {', '.join(p.lstrip('/') for p in task.files)}",
            "",
            "REQUIREMENTS:",
            requirements.render(),
            "EXISTING FILES AND THEIR EXPORTS:",
            describe_exports(snapshot) or "  None yet",
        ]

        # Full content only for files this task builds on or replaces.
        shown = [p for p in list(context_paths) + list(task.files) if p in snapshot]
        for path in dict.fromkeys(shown):
            parts.append(f"\n```{path.lstrip('/')}\n{snapshot[path]}\n```")
        return "\n".join(parts)
