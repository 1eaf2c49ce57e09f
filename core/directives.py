"""Structural directive enforcement for generated modules.

Rules, applied in order to every generated code file before it is accepted:

1. A module with interactive capability (hooks, event handlers, context,
   browser APIs) starts with the client marker; any other module, and every
   type-only module, carries no marker.
2. A module defining a single UI component exports it as the default binding.
3. A module defining a hook or utility exports it as a named binding.
4. A shared-state module (one that calls createContext) exports the context,
   an accessor hook and a provider as named bindings.

Fixes are pure text edits. Anything that cannot be fixed without inventing
code is returned as a note instead.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from config.rules import CLIENT_MARKER
from core.source_parser import is_code_file, parse_module

_MARKER_LINE = re.compile(r"""^\s*(['"])use client\1\s*;?[ \t]*\n?""", re.MULTILINE)

# Config and declaration files are never subject to component rules.
_EXEMPT = re.compile(r"""(^|/)([\w.-]+\.config\.(js|mjs|ts)|next-env\.d\.ts)$""")


@dataclass
class DirectiveResult:
    content: str
    fixes: list[str]
    notes: list[str]


def _remove_marker(content):
    return _MARKER_LINE.sub("", content, count=1).lstrip("\n")


def _add_marker(content):
    return f"{CLIENT_MARKER}\n\n{content.lstrip()}"


def _export_declaration(content, name):
    """Prefix the top-level declaration of `name` with `export`."""
    pattern = re.compile(
        rf"""^((?:async\s+)?(?:function\s*\*?\s*{name}\b|(?:const|let|var)\s+{name}\b|class\s+{name}\b))""",
        re.MULTILINE,
    )
    new, count = pattern.subn(r"export \1", content, count=1)
    return new if count else None


def _enforce_marker(path, content, fixes):
    summary = parse_module(path, content)
    if summary.needs_client:
        if summary.has_client_marker:
            return content
        if summary.marker_misplaced:
            fixes.append(f"{path}: moved client marker to the first line")
            return _add_marker(_remove_marker(content))
        fixes.append(f"{path}: added client marker ({', '.join(summary.capabilities)})")
        return _add_marker(content)
    if summary.has_client_marker or summary.marker_misplaced:
        fixes.append(f"{path}: removed client marker from a module without interactive code")
        return _remove_marker(content)
    return content


def _enforce_export_shape(path, content, fixes, notes):
    summary = parse_module(path, content)
    if summary.is_type_only:
        return content

    if summary.context_names:
        return _enforce_context(path, content, fixes, notes)

    components = summary.components
    if len(components) == 1 and not summary.has_default_export:
        name = components[0]
        fixes.append(f"{path}: added default export for component {name}")
        return content.rstrip("\n") + f"\n\nexport default {name};\n"

    units = summary.hooks or ()
    if not components and not units and not summary.has_jsx and summary.default_name:
        # Non-component module exporting its only unit as default, e.g. a utility.
        units = (summary.default_name,)
    for name in units:
        if name not in summary.named_exports and name == summary.default_name:
            fixes.append(f"{path}: added named export for {name}")
            content = content.rstrip("\n") + f"\n\nexport {{ {name} }};\n"
        elif name not in summary.named_exports:
            exported = _export_declaration(content, name)
            if exported is not None:
                fixes.append(f"{path}: exported {name} as a named binding")
                content = exported
    return content


def _enforce_context(path, content, fixes, notes):
    summary = parse_module(path, content)
    for context in summary.context_names:
        stem = context[:-len("Context")] if context.endswith("Context") else context
        required = {
            "container": [context],
            "accessor": [n for n in summary.declared if re.match(r"use[A-Z]", n) and stem in n],
            "provider": [n for n in summary.declared if n.endswith("Provider") and stem in n],
        }
        for role, candidates in required.items():
            if not candidates:
                notes.append(f"{path}: shared-state module {context} has no {role}")
                continue
            if any(c in summary.named_exports for c in candidates):
                continue
            exported = _export_declaration(content, candidates[0])
            if exported is None:
                notes.append(f"{path}: could not export {role} {candidates[0]}")
                continue
            fixes.append(f"{path}: exported {role} {candidates[0]}")
            content = exported
    return content


def enforce_directives(path: str, content: str) -> DirectiveResult:
    """Apply all directive rules to one file. Idempotent: a second pass changes nothing."""
    fixes: list[str] = []
    notes: list[str] = []
    if not is_code_file(path) or _EXEMPT.search(path):
        return DirectiveResult(content=content, fixes=fixes, notes=notes)

    content = _enforce_export_shape(path, content, fixes, notes)
    content = _enforce_marker(path, content, fixes)
    return DirectiveResult(content=content, fixes=fixes, notes=notes)


def check_directives(path: str, content: str) -> list[str]:
    """Return the violations enforce_directives would fix or report, without editing."""
    result = enforce_directives(path, content)
    return result.fixes + result.notes
