from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

VariableType = Literal["string", "int", "float", "bool", "list", "choice"]


class VariableDef(BaseModel):
    """Declared activity variable (type drives formatting for command substitution)."""

    type: VariableType = "string"
    default: Any = None
    description: str = ""
    choices: List[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


class CommandSpec(BaseModel):
    template: str
    llm_prepend: str = ""
    description: str = ""

    model_config = ConfigDict(extra="ignore")


class Skill(BaseModel):
    """A regex-triggered snippet prepended to the LLM context."""

    name: str = ""
    pattern: str
    llm_prepend: str = ""

    model_config = ConfigDict(extra="ignore")


class Activity(BaseModel):
    """Read-only descriptor for one activity (a named set of commands and context rules).

    `commands` values are either a bare template string or a CommandSpec.
    """

    v: int = 1
    name: str = ""
    description: str = ""
    commands: Dict[str, Union[str, CommandSpec]] = Field(default_factory=dict)
    env: Dict[str, str] = Field(default_factory=dict)
    skills: List[Skill] = Field(default_factory=list)
    llm_context: Optional[str] = None
    variables: Dict[str, VariableDef] = Field(default_factory=dict)

    model_config = ConfigDict(extra="ignore")

    def command_template(self, key: str) -> Optional[str]:
        spec = self.commands.get(key)
        if spec is None:
            return None
        if isinstance(spec, CommandSpec):
            return spec.template or None
        return spec or None

    def command_prepend(self, key: str) -> str:
        spec = self.commands.get(key)
        if isinstance(spec, CommandSpec):
            return spec.llm_prepend
        return ""
