"""
Shared utility helpers.

Small, reusable helpers that do not belong to the file format, the
gateway, or workflow orchestration.
"""

from __future__ import annotations

import os
import re
import tempfile
from pathlib import Path
from typing import Tuple

from .errors import ValidationError


# ---------------------------------------------------------------------------
# Filesystem helpers
# ---------------------------------------------------------------------------


def ensure_parent_dir(path: Path) -> None:
    """Ensure the parent directory of a file exists."""
    path.parent.mkdir(parents=True, exist_ok=True)


def atomic_write_text(path: Path, text: str, encoding: str = "utf-8") -> None:
    """
    Replace the content of a file in one step.

    The data goes to a temporary file in the same directory, is flushed
    to disk, then renamed over the target. Readers see either the old
    or the new content, never a truncated file.
    """

    ensure_parent_dir(path)
    fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding=encoding, newline="\n") as fh:
            fh.write(text)
            fh.flush()
            os.fsync(fh.fileno())
        if path.exists():
            os.chmod(tmp_name, path.stat().st_mode & 0o777)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------

_SHELL_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


def is_shell_name(name: str) -> bool:
    """Return True if name can be used as a POSIX shell variable."""
    return bool(_SHELL_NAME.fullmatch(name))


def split_assignment(token: str) -> Tuple[str, str]:
    """
    Split a NAME=VALUE token on the first '='.

    Raises:
        ValidationError: if there is no '=' or the name is empty
    """

    if "\n" in token or "\r" in token:
        raise ValidationError(f"Invalid entry {token!r}: line breaks are not allowed")

    name, sep, value = token.partition("=")
    if not sep:
        raise ValidationError(f"Invalid entry '{token}': expected NAME=VALUE")
    if not name:
        raise ValidationError(f"Invalid entry '{token}': name is empty")
    return name, value


def shell_quote(value: str) -> str:
    """Quote a value for POSIX shells using single quotes."""
    return "'" + value.replace("'", "'\"'\"'") + "'"
