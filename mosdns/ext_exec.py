"""Running external commands."""

from __future__ import annotations

import subprocess


def get_output_from_cmd(cmd: str, timeout: float | None = None) -> bytes:
    """Run cmd (split on single spaces) and return its standard output.

    Standard error goes to this process's standard error. A non-zero exit
    raises subprocess.CalledProcessError carrying the output; exceeding
    timeout seconds raises subprocess.TimeoutExpired.
    """
    args = cmd.split(" ")
    completed = subprocess.run(
        args,
        stdout=subprocess.PIPE,
        stderr=None,
        timeout=timeout,
        check=False,
    )
    if completed.returncode != 0:
        raise subprocess.CalledProcessError(completed.returncode, args, output=completed.stdout)
    return completed.stdout