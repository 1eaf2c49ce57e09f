"""Lightweight structural parser for generated TS/JS modules.

Produces a ModuleSummary (imports, exports, declarations, client-capability
flags) that both the directive enforcer and the import/export validator read,
so the two never disagree about what a file contains. This is not a full
TypeScript parser: it works on comment-stripped source and relies on the
conventions of formatted, top-level module code.
"""

from __future__ import annotations

import functools
import posixpath
import re
from dataclasses import dataclass

from config.rules import CLIENT_CAPABILITY_PATTERNS

CODE_EXTENSIONS = (".tsx", ".ts", ".jsx", ".js", ".mjs")

# Either a string literal (group 1, kept) or a comment (group 2, dropped).
_STRING_OR_COMMENT = re.compile(
    r"""("(?:\\.|[^"\\\n])*"|'(?:\\.|[^'\\\n])*'|`(?:\\.|[^`\\])*`)|(//[^\n]*|/\*.*?\*/)""",
    re.DOTALL,
)

_MARKER_LINE = re.compile(r"""^\s*(['"])use client\1\s*;?\s*$""")

_IMPORT_FROM = re.compile(
    r"""^[ \t]*import\s+(type\s+)?([^'";]*?)\s+from\s*(['"])([^'"]+)\3""", re.MULTILINE,
)
_IMPORT_BARE = re.compile(r"""^[ \t]*import\s*(['"])([^'"]+)\1""", re.MULTILINE)

_EXPORT_DEFAULT = re.compile(
    r"""^[ \t]*export\s+default\s+(?:async\s+)?(function\s*\*?\s*|class\s+)?(\w+)?(\s*\()?""",
    re.MULTILINE,
)
_EXPORT_DECL = re.compile(
    r"""^[ \t]*export\s+(?:declare\s+)?(?:async\s+)?(?:abstract\s+)?"""
    r"""(?:const|let|var|function\s*\*?|class|interface|type|enum)\s+(\w+)""",
    re.MULTILINE,
)
_EXPORT_BRACES = re.compile(
    r"""^[ \t]*export\s+(type\s+)?\{([^}]*)\}(?:\s*from\s*(['"])([^'"]+)\3)?""", re.MULTILINE,
)
_EXPORT_STAR = re.compile(
    r"""^[ \t]*export\s+\*\s*(?:as\s+(\w+)\s+)?from\s*(['"])([^'"]+)\2""", re.MULTILINE,
)
_COMMONJS_EXPORT = re.compile(r"""^\s*module\.exports\s*=""", re.MULTILINE)

# Declarations at column 0 are treated as top level.
_TOP_LEVEL_DECL = re.compile(
    r"""^(?:export\s+)?(?:default\s+)?(?:async\s+)?"""
    r"""(?:function\s*\*?\s*(\w+)|(?:const|let|var)\s+(\w+)|class\s+(\w+))""",
    re.MULTILINE,
)
_CONTEXT_DECL = re.compile(
    r"""^(?:export\s+)?(?:const|let|var)\s+(\w+)\s*(?::[^=]+)?=\s*(?:React\.)?createContext\b""",
    re.MULTILINE,
)
_RUNTIME_DECL = re.compile(
    r"""^[ \t]*(?:export\s+)?(?:default\s+)?(?:async\s+)?(?:function|const|let|var|class|enum)\b""",
    re.MULTILINE,
)
_PASCAL_CASE = re.compile(r"[A-Z][A-Z0-9]*[a-z][A-Za-z0-9]*")
_JSX = re.compile(r"""</\s*[A-Za-z]|<[A-Za-z][\w.]*(?:\s[^<>]*)?/>|<>""")


@dataclass(frozen=True)
class ImportRef:
    source: str                         # specifier as written, e.g. "./Counter" or "@/context/Todo"
    default: str | None = None          # local name of a default import
    names: tuple[str, ...] = ()         # imported (original) names of named bindings
    namespace: str | None = None
    type_only: bool = False
    reexport: bool = False
    side_effect: bool = False

    @property
    def is_local(self) -> bool:
        return self.source.startswith(".") or self.source.startswith("@/")


@dataclass(frozen=True)
class ModuleSummary:
    path: str
    has_client_marker: bool             # marker is the first line
    marker_misplaced: bool              # marker present, but not on the first line
    capabilities: tuple[str, ...]
    imports: tuple[ImportRef, ...]
    has_default_export: bool
    default_name: str | None
    named_exports: frozenset[str]
    star_reexports: tuple[str, ...]
    declared: tuple[str, ...]           # top-level binding names, in source order
    context_names: tuple[str, ...]
    is_type_only: bool
    has_jsx: bool

    @property
    def needs_client(self) -> bool:
        return bool(self.capabilities)

    @property
    def components(self) -> tuple[str, ...]:
        """PascalCase top-level bindings of a JSX module, excluding providers and contexts."""
        if not self.has_jsx:
            return ()
        return tuple(
            n for n in self.declared
            if _PASCAL_CASE.fullmatch(n) and not n.endswith("Provider") and n not in self.context_names
        )

    @property
    def hooks(self) -> tuple[str, ...]:
        return tuple(n for n in self.declared if re.match(r"use[A-Z]", n))


def is_code_file(path):
    return (
        path.endswith(CODE_EXTENSIONS)
        and not path.endswith(".d.ts")
        and "/node_modules/" not in path
    )


def strip_comments(source):
    """Remove // and /* */ comments while leaving string literals untouched."""
    return _STRING_OR_COMMENT.sub(lambda m: m.group(1) if m.group(1) is not None else "", source)


def _split_names(inner):
    items = []
    for raw in inner.split(","):
        item = raw.strip()
        if not item:
            continue
        if item.startswith("type "):
            item = item[5:].strip()
        items.append(item)
    return items


def _parse_import_clause(clause):
    """Split 'Default, { a, b as c }' / '* as ns' into (default, names, namespace)."""
    namespace = None
    names: list[str] = []
    m = re.search(r"\*\s*as\s+(\w+)", clause)
    if m:
        namespace = m.group(1)
        clause = clause[:m.start()] + clause[m.end():]
    braced_default = None
    m = re.search(r"\{([^}]*)\}", clause)
    if m:
        for item in _split_names(m.group(1)):
            parts = re.split(r"\s+as\s+", item)
            original, local = parts[0].strip(), parts[-1].strip()
            if original == "default":
                # { default as Counter } is a default import bound to Counter
                braced_default = local
            else:
                names.append(original)
        clause = clause[:m.start()] + clause[m.end():]
    default = clause.replace(",", " ").strip() or None
    if default and not re.fullmatch(r"[A-Za-z_$][\w$]*", default):
        default = None
    default = default or braced_default
    return default, tuple(names), namespace


def _marker_position(source):
    lines = source.splitlines()
    for i, line in enumerate(lines[:15]):
        if _MARKER_LINE.match(line):
            return i
    return None


@functools.lru_cache(maxsize=2048)
def parse_module(path: str, source: str) -> ModuleSummary:
    code = strip_comments(source)
    marker_at = _marker_position(source)

    imports: list[ImportRef] = []
    for m in _IMPORT_FROM.finditer(code):
        default, names, namespace = _parse_import_clause(m.group(2))
        imports.append(ImportRef(
            source=m.group(4), default=default, names=names, namespace=namespace,
            type_only=bool(m.group(1)),
        ))
    for m in _IMPORT_BARE.finditer(code):
        imports.append(ImportRef(source=m.group(2), side_effect=True))

    has_default = False
    default_name = None
    for m in _EXPORT_DEFAULT.finditer(code):
        has_default = True
        # export default memo(Counter): the callee is not the exported name
        if m.group(1) or not m.group(3):
            default_name = default_name or m.group(2)
    if _COMMONJS_EXPORT.search(code):
        has_default = True

    named: set[str] = {m.group(1) for m in _EXPORT_DECL.finditer(code)}
    for m in _EXPORT_BRACES.finditer(code):
        originals = []
        for item in _split_names(m.group(2)):
            parts = re.split(r"\s+as\s+", item)
            original, exported = parts[0].strip(), parts[-1].strip()
            originals.append(original)
            if exported == "default":
                has_default = True
                default_name = default_name or (original if original != "default" else None)
            else:
                named.add(exported)
        if m.group(4):
            imports.append(ImportRef(
                source=m.group(4),
                default="default" if "default" in originals else None,
                names=tuple(o for o in originals if o != "default"),
                type_only=bool(m.group(1)),
                reexport=True,
            ))

    star: list[str] = []
    for m in _EXPORT_STAR.finditer(code):
        if m.group(1):
            named.add(m.group(1))
            imports.append(ImportRef(source=m.group(3), namespace=m.group(1), reexport=True))
        else:
            star.append(m.group(3))
            imports.append(ImportRef(source=m.group(3), namespace="*", reexport=True))

    declared: list[str] = []
    for m in _TOP_LEVEL_DECL.finditer(code):
        name = m.group(1) or m.group(2) or m.group(3)
        if name and name not in declared:
            declared.append(name)

    capabilities = tuple(
        capability for pattern, capability in CLIENT_CAPABILITY_PATTERNS if pattern.search(code)
    )
    has_jsx = path.endswith((".tsx", ".jsx")) and bool(_JSX.search(code))
    is_type_only = (
        path.endswith(".ts")
        and not has_default
        and not _RUNTIME_DECL.search(code)
    )

    return ModuleSummary(
        path=path,
        has_client_marker=marker_at == 0,
        marker_misplaced=marker_at is not None and marker_at != 0,
        capabilities=() if is_type_only else capabilities,
        imports=tuple(imports),
        has_default_export=has_default,
        default_name=default_name,
        named_exports=frozenset(named),
        star_reexports=tuple(star),
        declared=tuple(declared),
        context_names=tuple(m.group(1) for m in _CONTEXT_DECL.finditer(code)),
        is_type_only=is_type_only,
        has_jsx=has_jsx,
    )


def resolve_import(source, importer, paths, aliases=None, extensions=CODE_EXTENSIONS):
    """Resolve an import specifier against a set of project paths.

    Tries a direct match, then each extension, then an index file, in that
    order. Returns the matching path, or None for an unresolved local import.
    External package specifiers are not resolved and also return None; callers
    check ImportRef.is_local first.
    """
    aliases = aliases or {"@/": "/src/"}
    base = None
    for prefix, target in aliases.items():
        if source.startswith(prefix):
            base = target + source[len(prefix):]
            break
    if base is None:
        if not source.startswith("."):
            return None
        base = posixpath.join(posixpath.dirname(importer), source)
    base = posixpath.normpath(base)
    if not base.startswith("/"):
        base = "/" + base

    if base in paths:
        return base
    for ext in extensions:
        if base + ext in paths:
            return base + ext
    for ext in extensions:
        candidate = posixpath.join(base, "index" + ext)
        if candidate in paths:
            return candidate
    return None
