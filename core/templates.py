"""Template provider: the boilerplate every generated project must contain."""

from config.defaults import DEFAULTS
from config.stacks import STACKS
from utils.template_engine import render_template


def required_files(stack="nextjs"):
    """The fixed list of project paths that must exist in every result."""
    return list(STACKS[stack]["required_files"])


def get_template_files(stack="nextjs", project_name=None):
    """Return {path: content} for the stack's boilerplate.

    Pure with respect to run state: the same arguments always give the same
    mapping, and nothing is cached or mutated between calls.
    """
    name = project_name or DEFAULTS["project_name"]
    variables = {
        "project_name": name,
        "project_title": name.replace("-", " ").replace("_", " ").title(),
    }
    template_dir = STACKS[stack]["template_dir"]
    return {
        path: render_template(template_dir, path, variables)
        for path in required_files(stack)
    }
