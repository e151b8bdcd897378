"""Shell and console utilities.

Provides a thin wrapper around the ``gh`` CLI plus the output helpers used
to report progress: step headers, success/failure checkpoints and fatal
errors.
"""

from __future__ import annotations

import enum
import subprocess
import sys
from collections.abc import Callable


class CheckpointType(enum.Enum):
    SUCCESS = "success"
    FAILURE = "failure"


# Signature of checkpoint reporters accepted throughout the package
Checkpoint = Callable[[str, CheckpointType], None]


def gh(*args: str, input: str | None = None) -> subprocess.CompletedProcess[str]:
    """Run a gh command and return the completed process.

    Never raises on a non-zero exit: callers inspect ``returncode``,
    ``stdout`` (the API response body) and ``stderr`` (gh's error line,
    which carries the HTTP status).

    Args:
        *args: Arguments to pass to gh (e.g., "api", "repos/o/r").
        input: Text to feed on stdin (used with ``--input -``).
    """
    return subprocess.run(
        ["gh", *args], input=input, capture_output=True, text=True, check=False
    )


def step(msg: str) -> None:
    """Print a visually distinct step header.

    Used to separate the phases of a release run in terminal output.
    """
    print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}")


def checkpoint(msg: str, kind: CheckpointType = CheckpointType.SUCCESS) -> None:
    """Report progress: successes on stdout, failures and warnings on stderr."""
    if kind is CheckpointType.SUCCESS:
        print(f"✔ {msg}")
    else:
        print(f"❯ {msg}", file=sys.stderr)


def fatal(msg: str) -> None:
    """Print an error message and exit with code 1.

    Use for unrecoverable errors that should halt the run.
    """
    print(f"ERROR: {msg}", file=sys.stderr)
    sys.exit(1)
