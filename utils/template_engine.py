"""Template engine using string.Template for safe rendering."""

import os
from string import Template


def get_templates_dir():
    """Return the absolute path to the templates directory."""
    return os.path.join(os.path.dirname(os.path.dirname(__file__)), "templates")


def load_template(template_dir, relative_path):
    """Load a template file and return its contents as a string."""
    templates_dir = get_templates_dir()
    path = os.path.join(templates_dir, template_dir, relative_path.lstrip("/"))
    resolved = os.path.realpath(path)
    if not resolved.startswith(os.path.realpath(templates_dir) + os.sep):
        raise ValueError(f"Template path escapes templates directory: {template_dir}/{relative_path}")
    with open(resolved, "r", encoding="utf-8") as f:
        return f.read()


def render_template(template_dir, relative_path, variables):
    """Load and render a template with the given variables.

    Uses string.Template for safe substitution - unknown placeholders
    are left as-is rather than raising errors.
    """
    raw = load_template(template_dir, relative_path)
    tmpl = Template(raw)
    return tmpl.safe_substitute(variables)
