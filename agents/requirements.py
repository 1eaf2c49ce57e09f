"""Requirement compiler — turns a free-text request into a requirements document."""

import logging
import os

from utils.llm import LLMError, MalformedResponse, call_llm
from core.errors import PlanningError
from core.state import RequirementsDocument

_PROMPT_FILE = os.path.join(os.path.dirname(__file__), "prompts", "requirements.txt")

log = logging.getLogger(__name__)

# Always part of the document, whatever the model returns.
TECHNICAL_CONSTRAINTS = (
    "Next.js 14 App Router with TypeScript; Tailwind CSS utility classes for styling",
    "Client-side state only (useState, useContext); no external APIs or databases",
    "No authentication, no real-time features, no file uploads",
    "No packages beyond react and next; no custom fonts from next/font",
)


def _load_prompt():
    with open(_PROMPT_FILE) as f:
        return f.read()


def _as_items(value):
    if isinstance(value, str):
        value = [line.lstrip("-* ").strip() for line in value.splitlines()]
    if not isinstance(value, list):
        return ()
    return tuple(str(v).strip() for v in value if str(v).strip())


class RequirementCompiler:
    """Produces the RequirementsDocument consumed by the planner. One LLM call."""

    name = "requirements"

    def run(self, requirement: str) -> RequirementsDocument:
        requirement = requirement.strip()
        if not requirement:
            raise PlanningError("Requirement is empty")

        try:
            result = call_llm(_load_prompt(), f"Request: {requirement}", response_format="json")
        except MalformedResponse as e:
            # Unstructured reply: keep it as the overview rather than failing the run
            log.warning("Requirements reply was not JSON, using it as overview")
            result = {"overview": e.raw.strip() or requirement}
        except LLMError as e:
            raise PlanningError(f"Could not compile requirements: {e}") from e

        if not isinstance(result, dict):
            result = {"features": result} if isinstance(result, list) else {}

        overview = str(result.get("overview") or requirement).strip()
        features = _as_items(result.get("features", ())) or (requirement,)
        constraints = _as_items(result.get("constraints", ())) + TECHNICAL_CONSTRAINTS

        return RequirementsDocument(overview=overview, features=features, constraints=constraints)
