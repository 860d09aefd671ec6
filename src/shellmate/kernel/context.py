"""LLM context composition.

The context handed to an agent is the activity's `llm_context` template with
three kinds of placeholders expanded, in this order:

1. `$_LLM_PREPEND`: the last command's `llm_prepend` plus the `llm_prepend`
   of every skill whose pattern matches the user input
2. `$_SCREEN`: the rendered transcript of completed rounds
3. every variable the activity declares

Placeholders that cannot be resolved are left as-is so a broken template is
visible in the output instead of silently blanked.
"""
from __future__ import annotations

import logging
import re
from typing import Callable, List, Optional

from ..contracts.v1 import Activity, Skill
from .ledger import RoundLedger
from .variables import VariableStore, format_value

logger = logging.getLogger("shellmate.context")

DEFAULT_CONTEXT_TEMPLATE = "$_SCREEN"
CONTEXT_VARIABLE = "llm_context"


def _expand(template: str, name: str, value: str) -> str:
    # Function replacements: values are literal text (backslashes included).
    out = re.sub(r"\$\{" + re.escape(name) + r"\}", lambda _m: value, template)
    out = re.sub(r"\$" + re.escape(name) + r"(?![A-Za-z0-9_])", lambda _m: value, out)
    return out


class ContextComposer:
    def __init__(
        self,
        *,
        ledger: RoundLedger,
        store: VariableStore,
        activity_provider: Callable[[], Optional[Activity]],
    ) -> None:
        self._ledger = ledger
        self._store = store
        self._activity = activity_provider

    def resolve_template(self, activity: Activity) -> str:
        if activity.llm_context:
            return activity.llm_context
        definition = activity.variables.get(CONTEXT_VARIABLE)
        if definition is not None:
            value = self._store.get(CONTEXT_VARIABLE)
            if value is not None and str(value):
                return str(value)
            if definition.default is not None and str(definition.default):
                return str(definition.default)
        return DEFAULT_CONTEXT_TEMPLATE

    def matching_skills(self, user_input: str, activity: Optional[Activity] = None) -> List[Skill]:
        activity = activity if activity is not None else self._activity()
        if activity is None:
            return []
        matched: List[Skill] = []
        for skill in activity.skills:
            try:
                if re.search(skill.pattern, user_input or "", re.IGNORECASE):
                    matched.append(skill)
            except re.error as e:
                logger.warning(
                    f"skipping skill {skill.name or skill.pattern!r}: invalid pattern ({e})",
                    extra={"activity": activity.name},
                )
        return matched

    def resolve_prepend(self, activity: Activity, user_input: str, last_command_key: Optional[str]) -> str:
        parts: List[str] = []
        if last_command_key:
            prepend = activity.command_prepend(last_command_key)
            if prepend:
                parts.append(prepend)
        for skill in self.matching_skills(user_input, activity):
            if skill.llm_prepend:
                parts.append(skill.llm_prepend)
        return "\n".join(parts)

    def build_llm_context(self, user_input: str, last_command_key: Optional[str] = None) -> str:
        screen = self._ledger.render_screen()
        activity = self._activity()
        if activity is None:
            return screen

        context = self.resolve_template(activity)
        context = _expand(context, "_LLM_PREPEND", self.resolve_prepend(activity, user_input, last_command_key))
        context = _expand(context, "_SCREEN", screen)

        for name, definition in activity.variables.items():
            value = self._store.get(name, definition.default)
            if value is None:
                continue
            context = _expand(context, name, format_value(value, definition))
        return context
