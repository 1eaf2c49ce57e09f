"""Pipeline state models shared across all stages."""

from __future__ import annotations

from dataclasses import dataclass, field

TASK_STATUSES = ("pending", "in_progress", "completed", "failed")

# Allowed forward moves; a task never re-enters "pending".
_TASK_TRANSITIONS = {
    "pending": {"in_progress", "failed"},
    "in_progress": {"completed", "failed"},
    "completed": set(),
    "failed": set(),
}


@dataclass(frozen=True)
class RequirementsDocument:
    overview: str
    features: tuple[str, ...] = ()
    constraints: tuple[str, ...] = ()

    def render(self) -> str:
        """Render as ordered markdown sections, the form every prompt consumes."""
        parts = ["## Overview", self.overview.strip(), "", "## Features"]
        parts.extend(f"- {f}" for f in self.features)
        parts.extend(["", "## Technical constraints"])
        parts.extend(f"- {c}" for c in self.constraints)
        return "\n".join(parts).strip() + "\n"


@dataclass
class Task:
    id: str
    name: str
    description: str = ""
    dependencies: set[str] = field(default_factory=set)
    files: list[str] = field(default_factory=list)      # project-absolute, e.g. "/src/app/page.tsx"
    priority: int = 0
    status: str = "pending"

    def advance(self, status: str) -> None:
        """Move the task forward. Raises ValueError on a backwards or unknown move."""
        if status not in TASK_STATUSES:
            raise ValueError(f"Unknown task status: {status}")
        if status not in _TASK_TRANSITIONS[self.status]:
            raise ValueError(f"Task {self.id}: cannot move from {self.status} to {status}")
        self.status = status


@dataclass
class Artifact:
    path: str
    content: str
    action: str = "create"              # create|update|delete


@dataclass(frozen=True)
class ValidationError:
    file: str           # importing file
    target: str         # import specifier as written, e.g. "@/context/TodoContext"
    symbol: str         # "default", a named binding, or "*" for path-only references
    kind: str           # unresolved_path|missing_default_export|missing_named_export

    def describe(self) -> str:
        if self.kind == "unresolved_path":
            return f"{self.file}: cannot resolve import path '{self.target}'"
        if self.kind == "missing_default_export":
            return f"{self.file}: imports default from '{self.target}' but it has no default export"
        return f"{self.file}: imports '{self.symbol}' from '{self.target}' but it is not exported there"


@dataclass(frozen=True)
class ValidationReport:
    errors: tuple[ValidationError, ...] = ()

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_feedback(self) -> str:
        return "\n".join(f"- {e.describe()}" for e in self.errors)


@dataclass
class BuildReport:
    success: bool
    stdout: str
    stderr: str
    exit_code: int

    @property
    def output(self) -> str:
        return f"{self.stdout}\n{self.stderr}".strip()


@dataclass
class RepairAttempt:
    number: int
    strategy: str       # build|quick_fix|ai_fix
    outcome: str        # passed|failed|applied|not_applicable|no_changes|error
    detail: str = ""


@dataclass
class PipelineState:
    request: str
    stack: str = "nextjs"
    project_name: str = ""
    requirements: RequirementsDocument | None = None
    tasks: list[Task] = field(default_factory=list)
    files: dict[str, str] = field(default_factory=dict)         # ProjectState: path -> content
    template_files: dict[str, str] = field(default_factory=dict)
    validation: ValidationReport | None = None
    build_reports: list[BuildReport] = field(default_factory=list)
    repair_attempts: list[RepairAttempt] = field(default_factory=list)
    status: str = "planning"            # planning|generating|validating|building|repairing|done|failed
    output_dir: str = ""
    errors: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)              # directive violations left in place

    def commit(self, artifacts: list[Artifact]) -> None:
        """Apply a completed step's artifacts. Last write wins per path."""
        for a in artifacts:
            if a.action == "delete":
                self.files.pop(a.path, None)
            else:
                self.files[a.path] = a.content
