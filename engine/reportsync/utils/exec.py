"""
reportsync — Async subprocess runner used for git and CI helper commands.
"""

from __future__ import annotations

import asyncio
import os
import re
import sys
from typing import Awaitable, Protocol

from reportsync.errors import CommandError

_ANSI_RE = re.compile(r"\x1b\[[0-9;?]*[ -/]*[@-~]")


class Runner(Protocol):
    def __call__(self, *args: str) -> Awaitable[str]: ...


def strip_ansi(text: str) -> str:
    return _ANSI_RE.sub("", text)


async def run(*args: str, cwd: str | None = None) -> str:
    """
    Run a command and return its output without the trailing newline.

    stdout is preferred; stderr is returned when stdout is empty (git writes
    some answers there). Raises CommandError on a non-zero exit status.
    """
    proc = await asyncio.create_subprocess_exec(
        *args,
        cwd=cwd,
        env={**os.environ},
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    out, err = await proc.communicate()
    stdout = out.decode("utf-8", errors="replace")
    stderr = err.decode("utf-8", errors="replace")

    if not sys.stdout.isatty():
        stdout = strip_ansi(stdout)
        stderr = strip_ansi(stderr)

    if proc.returncode != 0:
        raise CommandError(list(args), proc.returncode, stdout, stderr)

    output = stdout or stderr
    return output[:-1] if output.endswith("\n") else output
