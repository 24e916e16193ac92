"""Text file helpers for settings and notebook documents."""

from __future__ import annotations

import os
import stat
import tempfile
from pathlib import Path


def read_text(path: str, *, encoding: str = "utf-8") -> str:
    return Path(path).read_text(encoding=encoding)


def atomic_write_text(path: str, text: str, *, encoding: str = "utf-8") -> None:
    """Replace ``path`` in one step; an existing file keeps its permission bits."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    mode = stat.S_IMODE(target.stat().st_mode) if target.exists() else None

    fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding=encoding, newline="\n") as handle:
            handle.write(text)
        if mode is not None:
            os.chmod(tmp, mode)
        os.replace(tmp, target)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
