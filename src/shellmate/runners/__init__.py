from __future__ import annotations

from . import shell

__all__ = ["shell"]
