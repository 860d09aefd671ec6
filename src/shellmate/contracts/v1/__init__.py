from __future__ import annotations

from .activity import Activity, CommandSpec, Skill, VariableDef, VariableType
from .result import ExecResult

__all__ = [
    "Activity",
    "CommandSpec",
    "ExecResult",
    "Skill",
    "VariableDef",
    "VariableType",
]
