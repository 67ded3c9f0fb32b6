from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv


logger = logging.getLogger(__name__)

_LOADED = False


def load_env(force: bool = False) -> Path | None:
    """Load the first ``.env`` found next to the project; real env vars win."""
    global _LOADED
    if _LOADED and not force:
        return None
    _LOADED = True

    base_dir = Path(__file__).resolve().parent
    candidates = [
        base_dir.parent / ".env",
        base_dir / ".env",
        Path.cwd() / ".env",
    ]

    for path in candidates:
        if not path.exists():
            continue
        load_dotenv(dotenv_path=path, override=False)
        if os.getenv("INV_DEBUG") == "1":
            logger.debug("env.loaded", extra={"path": str(path)})
        return path
    return None
