from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from ..errors import SubprocessFailure, ToolMissing

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str


def _fmt_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


def run_cmd(
    argv: Sequence[str],
    *,
    check: bool = True,
    env: Mapping[str, str] | None = None,
    cwd: str | None = None,
    timeout_s: Optional[float] = None,
    context: Optional[str] = None,
) -> CmdResult:
    """Run a command to completion with consistent logging.

    - Always logs the command.
    - Captures stdout/stderr so callers can parse tool output.
    - check=True turns a non-zero exit into SubprocessFailure.
    """

    argv_list = list(argv)
    logger.info("CMD %s", _fmt_argv(argv_list))

    try:
        p = subprocess.run(
            argv_list,
            text=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=cwd,
            env=dict(os.environ, **(env or {})),
            timeout=timeout_s,
        )
    except FileNotFoundError as e:
        raise ToolMissing(f"executable not found: {argv_list[0]}", context=context) from e
    except subprocess.TimeoutExpired as e:
        raise SubprocessFailure(
            f"command timed out after {timeout_s}s: {_fmt_argv(argv_list)}", returncode=124, context=context
        ) from e

    if p.stdout:
        logger.debug("STDOUT %s", p.stdout.strip())
    if p.stderr:
        logger.debug("STDERR %s", p.stderr.strip())

    if check and p.returncode != 0:
        raise SubprocessFailure(
            f"command failed ({p.returncode}): {_fmt_argv(argv_list)}\n{p.stderr}",
            returncode=p.returncode,
            context=context,
        )

    return CmdResult(argv=argv_list, returncode=p.returncode, stdout=p.stdout, stderr=p.stderr)


def require_tool(executable: str) -> str:
    """Resolve an external tool or abort; there is no fallback for a missing tool."""

    found = shutil.which(executable)
    if not found:
        raise ToolMissing(f"required tool not found on PATH: {executable}")
    logger.info("Using %s (%s)", executable, found)
    return found
