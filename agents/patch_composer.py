"""Patch composer — turns build output and validation errors into fix instructions. Zero LLM calls."""

from __future__ import annotations

from config.rules import ERROR_LINE_MARKERS
from config.stacks import STACKS
from core.quick_fixes import error_paths
from core.source_parser import resolve_import
from core.state import BuildReport, ValidationReport

MAX_ERROR_BLOCKS = 10
MAX_BLOCK_LINES = 15
TAIL_LINES = 40


def _opens_block(line):
    return any(marker in line for marker in ERROR_LINE_MARKERS)


def extract_error_summary(output, max_blocks=MAX_ERROR_BLOCKS):
    """Pull the error blocks out of build output.

    A block starts at a line carrying an error marker and runs until a blank
    line or the next marker. Falls back to the tail of the output when no
    marker is found.
    """
    blocks: list[list[str]] = []
    current: list[str] | None = None
    for line in output.splitlines():
        if _opens_block(line):
            if len(blocks) == max_blocks:
                break
            current = [line]
            blocks.append(current)
        elif current is not None:
            if not line.strip():
                current = None
            elif len(current) < MAX_BLOCK_LINES:
                current.append(line)

    if not blocks:
        return "\n".join(output.strip().splitlines()[-TAIL_LINES:])
    return "\n\n".join("\n".join(b) for b in blocks)


def failing_files(files, report: BuildReport | None, validation: ValidationReport | None, stack="nextjs"):
    """Paths the fixer should see: files named in the error output plus both ends of broken imports."""
    config = STACKS[stack]
    paths = []
    if report is not None:
        paths += [p for p in error_paths(report.output) if p in files]
    if validation is not None:
        for error in validation.errors:
            paths.append(error.file)
            target = resolve_import(error.target, error.file, set(files),
                                    config["path_aliases"], tuple(config["code_extensions"]))
            if target:
                paths.append(target)
    return list(dict.fromkeys(paths))


class PatchComposer:
    """Collects build errors and import problems and formats patch instructions."""

    name = "patch_composer"

    def run(self, report: BuildReport | None, validation: ValidationReport | None = None,
            notes=()) -> str:
        sections = []

        if report is not None and not report.success:
            sections.append("BUILD ERRORS:\n" + extract_error_summary(report.output))

        if validation is not None and not validation.valid:
            sections.append("IMPORT/EXPORT PROBLEMS:\n" + validation.to_feedback())

        if notes:
            sections.append("STRUCTURAL PROBLEMS:\n" + "\n".join(f"- {n}" for n in notes))

        if not sections:
            return ""
        return "Fix the following issues in the code:\n\n" + "\n\n".join(sections)
