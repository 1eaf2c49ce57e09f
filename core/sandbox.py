"""Subprocess runner with command allowlist, timeout and a scrubbed environment."""

import os
import subprocess

from config.defaults import DEFAULTS


def run_in_sandbox(command, cwd, timeout=None, env=None):
    """Run a command in a sandboxed subprocess.

    Args:
        command: Command as a list of strings, e.g. ["npm", "run", "build"]
        cwd: Working directory (must exist)
        timeout: Seconds before killing the process (default from config)
        env: Extra environment variables layered over the current environment

    Returns:
        (stdout, stderr, returncode) tuple

    Raises:
        ValueError: If command is not in the allowlist or cwd is invalid.
    """
    if timeout is None:
        timeout = DEFAULTS["sandbox_timeout"]

    if not command or not isinstance(command, list):
        raise ValueError("Command must be a non-empty list of strings")

    executable = command[0]
    allowed = DEFAULTS["allowed_commands"]
    if executable not in allowed:
        raise ValueError(
            f"Command '{executable}' not in allowlist: {allowed}"
        )

    cwd = os.path.realpath(cwd)
    if not os.path.isdir(cwd):
        raise ValueError(f"Working directory does not exist: {cwd}")

    run_env = dict(os.environ)
    # The generated project never needs model credentials.
    run_env.pop("ANTHROPIC_API_KEY", None)
    if env:
        run_env.update(env)

    try:
        result = subprocess.run(
            command,
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout,
            env=run_env,
        )
        return result.stdout, result.stderr, result.returncode
    except subprocess.TimeoutExpired:
        return "", f"Command timed out after {timeout}s", -1
    except FileNotFoundError:
        return "", f"Command not found: {executable}", -1
