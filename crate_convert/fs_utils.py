from __future__ import annotations

import errno
import os
from pathlib import Path
from typing import Iterable, Optional


def path_exists(path: Path) -> Optional[bool]:
    try:
        path.stat()
        return True
    except (FileNotFoundError, NotADirectoryError):
        return False
    except OSError as exc:
        if exc.errno != errno.ENAMETOOLONG:
            raise
        parent = path.parent
        try:
            with os.scandir(parent) as it:
                for entry in it:
                    if entry.name == path.name:
                        return True
        except FileNotFoundError:
            return None
        return False


def is_supported(path: Path, extensions: Iterable[str]) -> bool:
    return path.suffix.lower() in {ext.lower() for ext in extensions}


def resolve_track_path(root: Path, track_path: str) -> Path:
    """Resolve a playlist track path against the library root.

    Serato stores paths relative to the volume root (no leading slash) for
    crates on external drives; absolute paths are kept as they are.
    """
    candidate = Path(track_path)
    if candidate.is_absolute():
        return candidate
    return (Path(root) / candidate).resolve()
