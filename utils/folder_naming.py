"""Folder naming utilities: project names, output dirs, dedup."""

import os
import re

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
OUTPUT_ROOT = os.path.join(BASE_DIR, "generated")

MAX_DEDUP = 1000

_FILLER = {
    "build", "me", "a", "an", "the", "create", "make", "generate",
    "write", "for", "to", "with", "using", "that", "and", "app",
    "application", "page", "site", "website", "please", "can",
    "you", "i", "want", "need", "some", "new", "simple", "nextjs",
}


def slugify(text):
    """Convert text to an npm-safe package slug: lowercase, hyphen-separated."""
    text = text.lower().strip()
    text = re.sub(r"[^\w\s-]", "", text)
    text = re.sub(r"[\s_-]+", "-", text)
    return text.strip("-")


def extract_project_name(request):
    """Pull a short project name from the request text, e.g. 'counter-buttons'."""
    words = re.sub(r"[^\w\s]", "", request.lower()).split()
    meaningful = [w for w in words if w not in _FILLER]
    name = slugify("-".join(meaningful[:3]))
    return name or "generated-app"


def _check_containment(path, root):
    """Verify the resolved path stays within root."""
    resolved = os.path.realpath(path)
    if not resolved.startswith(os.path.realpath(root) + os.sep):
        raise ValueError(f"Generated output path escapes output root: {path}")
    return resolved


def get_output_dir(request, root=None):
    """Return a deduplicated output directory path for the given request."""
    root = root or OUTPUT_ROOT
    project_name = extract_project_name(request)
    base = os.path.join(root, project_name)
    _check_containment(base, root)

    if not os.path.exists(base):
        return base

    # Dedup with -2, -3, etc.
    for counter in range(2, MAX_DEDUP + 2):
        candidate = f"{base}-{counter}"
        if not os.path.exists(candidate):
            return candidate

    raise RuntimeError(f"Too many duplicate projects (>{MAX_DEDUP}) for: {project_name}")
