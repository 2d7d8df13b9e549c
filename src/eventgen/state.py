"""Where generated-entity save data lives on disk.

``EVENTGEN_STATE_ROOT`` relocates every save file; relative values are taken
from the working directory at import time. Without it, saves sit in
``state/`` next to the checkout.
"""

from __future__ import annotations

import os
from pathlib import Path

_ROOT_ENV = "EVENTGEN_STATE_ROOT"


def _checkout_state_dir() -> Path:
    return Path(__file__).resolve().parents[2] / "state"


def _root_from(raw: str | None) -> Path:
    if not raw:
        return _checkout_state_dir()
    root = Path(raw).expanduser()
    return root if root.is_absolute() else Path.cwd() / root


STATE_ROOT: Path = _root_from(os.getenv(_ROOT_ENV))


def state_path(*parts: os.PathLike[str] | str) -> Path:
    """Return ``parts`` resolved under :data:`STATE_ROOT`."""

    return STATE_ROOT.joinpath(*parts)
