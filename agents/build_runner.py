"""Build runner — writes the project to a work dir and runs install + build. Zero LLM calls."""

import logging
import os
import shutil

from config.defaults import DEFAULTS
from config.stacks import STACKS
from core.errors import BuildError
from core.sandbox import run_in_sandbox
from core.state import BuildReport

log = logging.getLogger(__name__)


def _resolve(work_dir, path):
    """Map a project-absolute path into work_dir. Raises BuildError on escape."""
    root = os.path.realpath(work_dir)
    target = os.path.realpath(os.path.join(root, path.lstrip("/")))
    if not target.startswith(root + os.sep):
        raise BuildError(f"Path escapes the project directory: {path}")
    return target


def write_project(files, work_dir, previous=()):
    """Write files under work_dir, removing paths written before but no longer present."""
    os.makedirs(work_dir, exist_ok=True)
    for path in set(previous) - set(files):
        target = _resolve(work_dir, path)
        if os.path.isfile(target):
            os.remove(target)
    for path, content in files.items():
        target = _resolve(work_dir, path)
        os.makedirs(os.path.dirname(target), exist_ok=True)
        with open(target, "w", encoding="utf-8") as fp:
            fp.write(content)


def clear_paths(work_dir, paths):
    """Delete build artifacts (files or directories) relative to work_dir."""
    for path in paths:
        target = _resolve(work_dir, path)
        if os.path.isdir(target):
            shutil.rmtree(target)
        elif os.path.isfile(target):
            os.remove(target)


class BuildRunner:
    """Runs the stack's install and build commands in the sandbox."""

    name = "build_runner"

    def __init__(self, stack="nextjs"):
        config = STACKS[stack]
        self.install_command = list(config["install_command"])
        self.build_command = list(config["build_command"])
        self.env = dict(config["build_env"])

    def run(self, files, work_dir, previous=()) -> BuildReport:
        """Write `files` and build. `previous` is what the last build of this work_dir wrote."""
        write_project(files, work_dir, previous=previous)

        if not os.path.isdir(os.path.join(work_dir, "node_modules")):
            log.info("Installing dependencies in %s", work_dir)
            stdout, stderr, rc = run_in_sandbox(
                self.install_command, cwd=work_dir,
                timeout=DEFAULTS["install_timeout"], env=self.env,
            )
            if rc != 0:
                return BuildReport(success=False, stdout=stdout, stderr=stderr, exit_code=rc)

        log.info("Running %s", " ".join(self.build_command))
        stdout, stderr, rc = run_in_sandbox(
            self.build_command, cwd=work_dir,
            timeout=DEFAULTS["build_timeout"], env=self.env,
        )
        return BuildReport(success=rc == 0, stdout=stdout, stderr=stderr, exit_code=rc)
