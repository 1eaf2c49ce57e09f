"""Import/export consistency validator. Pure: no disk, network or process access."""

from __future__ import annotations

from config.stacks import STACKS
from core.source_parser import is_code_file, parse_module, resolve_import
from core.state import ValidationError, ValidationReport


class ImportExportValidator:
    """Checks every local import in a project against the exports of its target.

    For each import: the path must resolve (direct, then with an extension,
    then as an index file); a default import needs a default export on the
    target; a named import needs that name among the target's named exports,
    directly declared or re-exported (including through `export *`).
    """

    name = "validator"

    def __init__(self, stack="nextjs"):
        config = STACKS[stack]
        self.aliases = config["path_aliases"]
        self.extensions = tuple(config["code_extensions"])

    def validate(self, files: dict[str, str]) -> ValidationReport:
        paths = set(files)
        errors: list[ValidationError] = []
        seen: set[ValidationError] = set()

        for path in sorted(files):
            if not is_code_file(path):
                continue
            summary = parse_module(path, files[path])
            for ref in summary.imports:
                if not ref.is_local:
                    continue
                for error in self._check_ref(path, ref, files, paths):
                    if error not in seen:
                        seen.add(error)
                        errors.append(error)

        return ValidationReport(errors=tuple(errors))

    def _check_ref(self, path, ref, files, paths):
        target = resolve_import(ref.source, path, paths, self.aliases, self.extensions)
        if target is None:
            return [ValidationError(file=path, target=ref.source, symbol="*", kind="unresolved_path")]
        if not is_code_file(target):
            # Stylesheets, JSON and other assets only need to exist.
            return []

        errors = []
        target_summary = parse_module(target, files[target])
        if ref.default and not target_summary.has_default_export:
            errors.append(ValidationError(
                file=path, target=ref.source, symbol="default", kind="missing_default_export",
            ))
        if ref.names:
            exported = self.exported_names(target, files)
            for name in ref.names:
                if name not in exported:
                    errors.append(ValidationError(
                        file=path, target=ref.source, symbol=name, kind="missing_named_export",
                    ))
        return errors

    def exported_names(self, path, files, _visiting=None):
        """Named exports of `path`, following `export * from` chains."""
        visiting = _visiting or set()
        if path in visiting:
            return set()
        visiting.add(path)

        summary = parse_module(path, files[path])
        names = set(summary.named_exports)
        for source in summary.star_reexports:
            target = resolve_import(source, path, set(files), self.aliases, self.extensions)
            if target is not None and is_code_file(target):
                names |= self.exported_names(target, files, visiting)
        return names


def validate_project(files: dict[str, str], stack="nextjs") -> ValidationReport:
    return ImportExportValidator(stack).validate(files)
