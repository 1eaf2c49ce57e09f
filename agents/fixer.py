"""Build fixer agent — asks the model for corrected files after a failed build."""

import logging
import os

from utils.llm import call_llm
from agents.generator import parse_artifacts
from config.rules import PROTECTED_PATHS
from core.directives import enforce_directives
from core.source_parser import is_code_file
from core.state import Artifact

_PROMPT_FILE = os.path.join(os.path.dirname(__file__), "prompts", "fixer.txt")

log = logging.getLogger(__name__)

# Files whose content is fixed by the template and never handed to the model.
_LOCKED = PROTECTED_PATHS | {"/package.json"}


def _load_prompt():
    with open(_PROMPT_FILE) as f:
        return f.read()


class BuildFixerAgent:
    """One LLM call per repair attempt. Raises LLMError subclasses on backend failure."""

    name = "fixer"

    def run(self, files, instructions, paths=()) -> list[Artifact]:
        shown = [p for p in paths if p in files and p not in _LOCKED]
        if not shown:
            shown = [p for p in sorted(files) if p.startswith("/src/") and is_code_file(p)]

        parts = [instructions, "", "CURRENT FILES:"]
        for path in shown:
            parts.append(f"\n```{path.lstrip('/')}\n{files[path]}\n```")
        parts.append("\nALL PROJECT FILES: " + ", ".join(p.lstrip("/") for p in sorted(files)))

        result = call_llm(_load_prompt(), "\n".join(parts), response_format="json")
        artifacts = parse_artifacts(result, files)

        accepted = []
        for a in artifacts:
            if a.path in _LOCKED:
                log.warning("Fixer tried to modify locked file %s, ignoring", a.path)
                continue
            if a.action == "delete":
                if a.path in files:
                    accepted.append(a)
                continue
            enforced = enforce_directives(a.path, a.content)
            if files.get(a.path) == enforced.content:
                continue
            for note in enforced.notes:
                log.warning("Fixer output for %s: %s", a.path, note)
            accepted.append(Artifact(path=a.path, content=enforced.content, action=a.action))
        return accepted
