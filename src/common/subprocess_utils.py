"""Blocking, single-shot execution of external package-manager tools."""
from __future__ import annotations

import logging
import shlex
import subprocess
import sys
from typing import List, Optional

from constants import ExitCodes
from common.logging_utils import extra_context, Timer

logger = logging.getLogger(__name__)


def run_cmd(cmd: List[str], cwd: Optional[str] = None) -> None:
    """Run ``cmd`` with inherited stdio; exit on failure.

    There is no retry and no rollback: a failed tool leaves whatever it wrote
    in place for the user to inspect.
    """
    logger.info("--> %s", shlex.join(cmd))
    with Timer() as t:
        try:
            result = subprocess.run(cmd, cwd=cwd, check=False)
        except OSError as exc:
            logger.error("%s: %s", cmd[0], exc)
            sys.exit(ExitCodes.TOOL_ERROR.value)
    logger.debug(
        "Command finished",
        extra=extra_context(
            event="subprocess",
            action=cmd[0],
            returncode=result.returncode,
            duration_ms=t.duration_ms(),
        ),
    )
    if result.returncode != 0:
        logger.error("command failed with exit status %s: %s", result.returncode, shlex.join(cmd))
        sys.exit(ExitCodes.TOOL_ERROR.value)


def get_cmd_output(cmd: List[str], cwd: Optional[str] = None) -> str:
    """Run ``cmd`` and return its stdout; exit on failure."""
    logger.debug("--> %s", shlex.join(cmd))
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as exc:
        logger.error("%s: %s", cmd[0], exc)
        sys.exit(ExitCodes.TOOL_ERROR.value)
    if result.returncode != 0:
        logger.error(
            "command failed with exit status %s: %s\n%s",
            result.returncode,
            shlex.join(cmd),
            result.stderr.strip(),
        )
        sys.exit(ExitCodes.TOOL_ERROR.value)
    return result.stdout
