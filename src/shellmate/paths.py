from __future__ import annotations

import os
from pathlib import Path


def shellmate_home() -> Path:
    env = os.environ.get("SHELLMATE_HOME", "").strip()
    if env:
        return Path(env).expanduser().resolve()
    return (Path.home() / ".shellmate").resolve()


def ensure_home() -> Path:
    home = shellmate_home()
    home.mkdir(parents=True, exist_ok=True)
    return home
