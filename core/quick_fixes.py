"""Deterministic fixes for known build-failure signatures. Zero LLM calls.

Each fix is a pure function `(files, output, template_files) -> QuickFix | None`.
It never touches the filesystem; paths to clear in the work dir (build cache,
lockfiles, installed modules) are returned for the build runner to remove.
None means the fix does not apply to this project.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field

from config.rules import BUILD_FAILURE_SIGNATURES, CLIENT_MARKER
from core.source_parser import is_code_file, parse_module


@dataclass
class QuickFix:
    signature: str
    files: dict[str, str]                               # full project state after the fix
    description: str
    clear: list[str] = field(default_factory=list)      # work dir paths to remove


def classify_failure(output, skip=()):
    """Return (signature, message) for the first known signature in build output, else None.

    Signatures named in `skip` are passed over.
    """
    for name, pattern, message in BUILD_FAILURE_SIGNATURES:
        if name not in skip and pattern.search(output):
            return name, message
    return None


def _tailwind_major(package_json):
    try:
        manifest = json.loads(package_json)
    except (TypeError, ValueError):
        return None
    deps = {**manifest.get("dependencies", {}), **manifest.get("devDependencies", {})}
    match = re.search(r"\d+", str(deps.get("tailwindcss", "")))
    return int(match.group()) if match else None


def fix_postcss_plugin(files, output, template_files):
    """Bring postcss config and the pinned Tailwind version back in line with the template."""
    updated = dict(files)
    clear = []
    for stray in ("/postcss.config.mjs", "/postcss.config.cjs", "/postcss.config.ts"):
        updated.pop(stray, None)

    expected_major = _tailwind_major(template_files.get("/package.json", ""))
    actual_major = _tailwind_major(updated.get("/package.json", ""))
    if expected_major is not None and actual_major is not None and actual_major != expected_major:
        updated["/package.json"] = template_files["/package.json"]
        clear += ["node_modules", "package-lock.json"]

    updated["/postcss.config.js"] = template_files["/postcss.config.js"]
    if "/tailwind.config.js" in template_files:
        updated.setdefault("/tailwind.config.js", template_files["/tailwind.config.js"])

    if updated == files and not clear:
        return None
    return QuickFix("postcss_plugin_mismatch", updated, "Restored PostCSS config for Tailwind v3", clear)


def fix_next_config_ts(files, output, template_files):
    updated = dict(files)
    removed = [p for p in ("/next.config.ts", "/next.config.mts") if updated.pop(p, None) is not None]
    if not removed:
        return None
    updated.setdefault("/next.config.js", template_files["/next.config.js"])
    return QuickFix("next_config_ts_unsupported", updated, f"Replaced {', '.join(removed)} with next.config.js")


_ERROR_FILE = re.compile(r"""(?:^|[\s\[(,'"/.])(src/[\w@()\[\]./-]+?\.(?:tsx|ts|jsx|js))\b""", re.MULTILINE)


def error_paths(output):
    """Project paths named in build output, in order of first mention."""
    return list(dict.fromkeys("/" + m.group(1) for m in _ERROR_FILE.finditer(output)))


def fix_client_marker(files, output, template_files):
    """Add the client marker to interactive modules named in the error, or any that lack it."""
    named = [p for p in error_paths(output) if p in files and is_code_file(p)]
    candidates = named or [
        p for p in sorted(files)
        if is_code_file(p) and parse_module(p, files[p]).needs_client
    ]
    updated = dict(files)
    fixed = []
    for path in candidates:
        summary = parse_module(path, files[path])
        if summary.has_client_marker or summary.is_type_only:
            continue
        # Named in the error: the build knows better than the capability scan.
        if path in named or summary.needs_client:
            updated[path] = f"{CLIENT_MARKER}\n\n{files[path].lstrip()}"
            fixed.append(path)
    if not fixed:
        return None
    return QuickFix("missing_client_marker", updated, f"Added client marker to {', '.join(fixed)}")


def fix_missing_required_file(files, output, template_files):
    missing = [p for p in template_files if p not in files]
    if not missing:
        return None
    updated = dict(files)
    for path in missing:
        updated[path] = template_files[path]
    return QuickFix("missing_required_file", updated, f"Restored {', '.join(missing)} from template")


_FONT_IMPORT = re.compile(r"""^\s*import\s*\{([^}]*)\}\s*from\s*['"]next/font/google['"];?[ \t]*\n?""", re.MULTILINE)


def _strip_fonts(content):
    imported = set()
    for m in _FONT_IMPORT.finditer(content):
        imported |= {n.strip().split(" as ")[-1].strip() for n in m.group(1).split(",") if n.strip()}
    content = _FONT_IMPORT.sub("", content)

    font_vars = set()
    for loader in imported:
        decl = re.compile(rf"""^\s*(?:export\s+)?const\s+(\w+)\s*=\s*{re.escape(loader)}\s*\(.*?\)\s*;?[ \t]*\n?""",
                          re.MULTILINE | re.DOTALL)
        font_vars |= set(decl.findall(content))
        content = decl.sub("", content)

    for var in font_vars:
        content = re.sub(rf"""\$\{{\s*{var}\.(?:className|variable)\s*\}}\s*""", "", content)
        content = re.sub(rf"""\s*className=\{{\s*{var}\.(?:className|variable)\s*\}}""", "", content)
    content = re.sub(r"""className=\{`\s*([^`$]*?)\s*`\}""",
                     lambda m: f'className="{m.group(1)}"' if m.group(1) else "", content)
    content = re.sub(r"""\s+className="\s*"(?=[\s>/])""", "", content)
    return content


def fix_font_fetch(files, output, template_files):
    """Drop next/font/google usage; the build environment may have no network."""
    updated = dict(files)
    fixed = []
    for path, content in files.items():
        if is_code_file(path) and "next/font/google" in content:
            updated[path] = _strip_fonts(content)
            fixed.append(path)
    if not fixed:
        return None
    return QuickFix("font_fetch_failed", updated, f"Removed remote fonts from {', '.join(fixed)}")


def fix_stale_artifacts(files, output, template_files):
    updated = dict(files)
    clear = [".next"]
    if "/package-lock.json" in updated and "/yarn.lock" in updated:
        updated.pop("/yarn.lock")
    clear.append("package-lock.json")
    return QuickFix("stale_build_artifacts", updated, "Cleared .next build cache and lockfile", clear)


QUICK_FIXES = {
    "postcss_plugin_mismatch": fix_postcss_plugin,
    "next_config_ts_unsupported": fix_next_config_ts,
    "missing_client_marker": fix_client_marker,
    "missing_required_file": fix_missing_required_file,
    "font_fetch_failed": fix_font_fetch,
    "stale_build_artifacts": fix_stale_artifacts,
}


def apply_quick_fix(signature, files, output, template_files):
    fix = QUICK_FIXES.get(signature)
    if fix is None:
        return None
    return fix(files, output, template_files)
