"""Pattern tables for directive enforcement, planning filters and build-failure triage."""

import re

CLIENT_MARKER = "'use client';"

# A module matching any of these needs to run in the client (interactive) context.
# Each entry: (pattern_regex, capability)
CLIENT_CAPABILITY_PATTERNS = [
    (
        # React hooks and custom hooks alike: useState(...), useTodo(), useRef<HTMLDivElement>(...)
        re.compile(r"""\buse[A-Z]\w*\s*[(<]"""),
        "hook",
    ),
    (
        re.compile(r"""\b(onClick|onChange|onSubmit|onFocus|onBlur|onKeyDown|onKeyUp|onKeyPress|"""
                   r"""onMouseEnter|onMouseLeave|onMouseOver|onMouseOut|onInput|onDoubleClick)\s*="""),
        "event_handler",
    ),
    (
        re.compile(r"""\bcreateContext\s*[(<]"""),
        "context",
    ),
    (
        re.compile(r"""\b(window|document|localStorage|sessionStorage|navigator)\s*\."""),
        "browser_api",
    ),
]

# Tasks about these topics are dropped by the planner; the behaviour they describe is
# expected inline in regular components or is out of scope for generated projects.
PLANNER_EXCLUSIONS = [
    (re.compile(r"\boffline\b|service\s*worker|\bpwa\b", re.IGNORECASE), "offline/PWA support"),
    (re.compile(r"\banimations?\b|\btransitions?\b", re.IGNORECASE), "standalone animation work"),
    (re.compile(r"\baccessibility\s+features?\b", re.IGNORECASE), "standalone accessibility work"),
]

# Boilerplate paths no task and no AI fix may overwrite.
PROTECTED_PATHS = {"/src/app/globals.css"}

# Known build-failure signatures. Each entry:
# (name, pattern_regex, message)
# The name keys the deterministic edit in core.quick_fixes.QUICK_FIXES.
BUILD_FAILURE_SIGNATURES = [
    (
        "postcss_plugin_mismatch",
        re.compile(r"tailwindcss` directly as a PostCSS plugin|@tailwindcss/postcss|"
                   r"Cannot apply unknown utility class", re.IGNORECASE),
        "Tailwind/PostCSS plugin does not match the installed Tailwind version",
    ),
    (
        "next_config_ts_unsupported",
        re.compile(r"next\.config\.ts'? is not supported"),
        "next.config.ts is not supported by this Next.js version",
    ),
    (
        "missing_client_marker",
        re.compile(r"only works in a Client Component|needs useState|needs useEffect|"
                   r"Event handlers cannot be passed to Client Component props|"
                   r"You're importing a component that needs"),
        "Interactive module is missing the 'use client' directive",
    ),
    (
        "missing_required_file",
        re.compile(r"Can't resolve '[^']+'|Couldn't find any `pages` or `app` directory"),
        "A required project file is missing",
    ),
    (
        "font_fetch_failed",
        re.compile(r"Failed to fetch font|next/font/google|Failed to download .* from Google Fonts",
                   re.IGNORECASE),
        "Remote font could not be fetched at build time",
    ),
    (
        "stale_build_artifacts",
        re.compile(r"ENOENT[^\n]*\.next|Found lockfile missing swc dependencies|"
                   r"multiple lockfiles|Found multiple lockfiles", re.IGNORECASE),
        "Stale lockfile or build cache in the working directory",
    ),
]

# Lines that open an error block in build output.
ERROR_LINE_MARKERS = (
    "Failed to compile",
    "Module parse failed",
    "Module not found",
    "Type error:",
    "Error:",
    "./src/",
)
