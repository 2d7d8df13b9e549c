from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any


def _dump(data: Any) -> str:
    return json.dumps(data, ensure_ascii=False, indent=2, sort_keys=True)


def atomic_write_json(path: str | Path, data: Any) -> None:
    """Replace ``path`` with ``data`` encoded as JSON in a single rename.

    The payload is encoded before anything touches the disk, so an
    unserialisable value leaves the old save in place. The scratch file is
    created beside ``path`` and removed if the rename never happens.
    """

    target = Path(path)
    payload = _dump(data)
    target.parent.mkdir(parents=True, exist_ok=True)

    fd, scratch = tempfile.mkstemp(prefix=f".{target.name}.", dir=target.parent)
    replaced = False
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(payload)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(scratch, target)
        replaced = True
    finally:
        if not replaced:
            Path(scratch).unlink(missing_ok=True)
