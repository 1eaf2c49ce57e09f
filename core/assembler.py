"""Project assembler: template + generated files -> the final file map."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class SynthesisResult:
    files: dict[str, str]
    feedback: str | None = None     # None iff validation and build both succeeded
    tasks: list = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.feedback is None


def assemble(template_files: dict[str, str], files: dict[str, str]) -> dict[str, str]:
    """Merge generated files over the template.

    Generated content wins on collision; every template path is present in
    the result, falling back to the template when nothing was generated for it.
    Output is ordered by path so results are reproducible.
    """
    merged = dict(template_files)
    merged.update(files)
    return {path: merged[path] for path in sorted(merged)}


def combine_feedback(*sections) -> str | None:
    """Join non-empty feedback sections; None when there is nothing to report."""
    parts = [s.strip() for s in sections if s and s.strip()]
    return "\n\n".join(parts) if parts else None
