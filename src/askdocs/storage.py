"""On-disk copies of uploaded files, one directory per session."""
from __future__ import annotations

import logging
import re
from pathlib import Path, PurePath
from uuid import uuid4

LOGGER = logging.getLogger(__name__)

UPLOADS_DIR = "uploads"

_UNSAFE_RE = re.compile(r"[^\w.-]+", re.ASCII)


def sanitize_filename(name: str, fallback: str = "upload") -> str:
    """Reduce *name* to its last path component, keeping only ``[A-Za-z0-9_.-]``."""

    base = PurePath(name.replace("\\", "/")).name
    return _UNSAFE_RE.sub("_", base).strip("._") or fallback


def session_upload_dir(data_dir: Path | str, session_id: str) -> Path:
    return Path(data_dir) / UPLOADS_DIR / (_UNSAFE_RE.sub("_", session_id).strip("._") or "default")


def save_upload(data_dir: Path | str, session_id: str, file_name: str, data: bytes) -> Path:
    """Write *data* under the session's upload directory and return the absolute path.

    Names get a random prefix so re-uploading a file never overwrites the
    earlier copy.
    """

    target_dir = session_upload_dir(data_dir, session_id)
    target_dir.mkdir(parents=True, exist_ok=True)
    destination = target_dir / f"{uuid4().hex[:12]}-{sanitize_filename(file_name)}"
    destination.write_bytes(data)
    return destination.resolve()


def remove_upload(path: Path | str | None) -> bool:
    """Delete a stored upload. Returns ``False`` when there was nothing to delete or removal failed."""

    if not path:
        return False
    try:
        Path(path).unlink()
    except FileNotFoundError:
        return False
    except OSError as error:
        LOGGER.warning("Could not remove stored upload %s: %s", path, error)
        return False
    return True
