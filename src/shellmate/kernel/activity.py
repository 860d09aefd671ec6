from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml  # type: ignore

from ..contracts.v1 import Activity

logger = logging.getLogger("shellmate.activity")


def parse_activities(text: str) -> Dict[str, Activity]:
    """Parse an activities YAML document.

    Accepted shapes: `{activities: {name: body, ...}}` or `{name: body, ...}`.
    """
    raw = str(text or "").strip()
    if not raw:
        return {}
    try:
        data = yaml.safe_load(raw)
    except Exception as e:
        raise ValueError(f"invalid activities YAML: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError("activities file must be a mapping (YAML object)")

    body = data.get("activities", data)
    if not isinstance(body, dict):
        raise ValueError("'activities' must be a mapping of name -> activity")

    out: Dict[str, Activity] = {}
    for name, doc in body.items():
        key = str(name or "").strip()
        if not key:
            continue
        if doc is None:
            doc = {}
        if not isinstance(doc, dict):
            raise ValueError(f"activity {key!r} must be a mapping")
        payload: Dict[str, Any] = dict(doc)
        payload.setdefault("name", key)
        try:
            out[key] = Activity.model_validate(payload)
        except Exception as e:
            raise ValueError(f"invalid activity {key!r}: {e}") from e
    return out


def load_activities(path: Path) -> Dict[str, Activity]:
    if not path.exists():
        logger.info(f"no activities file at {path}")
        return {}
    return parse_activities(path.read_text(encoding="utf-8"))


class ActivitySet:
    """Known activities plus the currently selected one."""

    def __init__(self, activities: Optional[Dict[str, Activity]] = None) -> None:
        self._activities: Dict[str, Activity] = dict(activities or {})
        self._current: Optional[str] = None

    def names(self) -> List[str]:
        return list(self._activities.keys())

    def get(self, name: str) -> Optional[Activity]:
        return self._activities.get(name)

    def add(self, activity: Activity) -> None:
        self._activities[activity.name] = activity

    def select(self, name: Optional[str]) -> Optional[Activity]:
        if name is None:
            self._current = None
            return None
        if name not in self._activities:
            raise KeyError(f"unknown activity: {name}")
        self._current = name
        return self._activities[name]

    @property
    def current(self) -> Optional[Activity]:
        if self._current is None:
            return None
        return self._activities.get(self._current)
