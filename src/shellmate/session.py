"""One REPL session: owns the ledger, interrupt ladder, history and executor.

Nothing here is module-global, so independent sessions (and tests) never
share state.
"""
from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional

from .contracts.v1 import Activity, ExecResult
from .kernel.activity import ActivitySet, load_activities
from .kernel.context import ContextComposer
from .kernel.history import HistoryManager
from .kernel.interrupts import InterruptCoordinator
from .kernel.ledger import RoundLedger, UndoResult
from .kernel.settings import Settings, load_settings
from .kernel.variables import VariableStore
from .runners.shell import ShellExecutor
from .util.fs import atomic_write_text

logger = logging.getLogger("shellmate.session")

CONTEXT_FILE_ENV = "SHELLMATE_CONTEXT_FILE"


class ShellSession:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        activities: Optional[Dict[str, Activity]] = None,
        interrupts: Optional[InterruptCoordinator] = None,
    ) -> None:
        self.settings = settings or load_settings()
        self.session_id = uuid.uuid4().hex[:12]
        if activities is None:
            activities = load_activities(self.settings.activities_path)
        self.activities = ActivitySet(activities)
        self.store = VariableStore()
        self.ledger = RoundLedger(self.settings.buffer_path)
        self.interrupts = interrupts or InterruptCoordinator()
        self.history = HistoryManager(self.settings.history_size)
        self.executor = ShellExecutor(
            ledger=self.ledger,
            interrupts=self.interrupts,
            store=self.store,
            activity_provider=lambda: self.activities.current,
        )
        self.composer = ContextComposer(
            ledger=self.ledger,
            store=self.store,
            activity_provider=lambda: self.activities.current,
        )
        self.last_command_key: Optional[str] = None

    def __enter__(self) -> "ShellSession":
        self.start()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    @property
    def activity(self) -> Optional[Activity]:
        return self.activities.current

    def start(self) -> None:
        self.ledger.init()
        if self.settings.default_activity:
            try:
                self.use_activity(self.settings.default_activity)
            except KeyError:
                logger.warning(
                    f"default activity {self.settings.default_activity!r} not found",
                    extra={"session_id": self.session_id},
                )
        logger.info("session started", extra={"session_id": self.session_id})

    def use_activity(self, name: Optional[str]) -> Optional[Activity]:
        activity = self.activities.select(name)
        if activity is not None:
            self.store.load_activity(activity)
        self.last_command_key = None
        return activity

    def _flush_on_exit(self) -> None:
        # Third Ctrl+C: keep whatever the running round produced.
        self.ledger.end_round()
        self.ledger.close()

    def run_command(self, key: str, input: str = "", **callbacks: Any) -> Optional[ExecResult]:
        if not self.executor.is_command_key(key):
            return None
        display = f"{key} {input}".strip()
        self.ledger.start_round(display)
        try:
            result = self.executor.run_command(key, input, on_parent_exit=self._flush_on_exit, **callbacks)
        finally:
            self.ledger.end_round()
        self.last_command_key = key
        self.history.add("CMD", display)
        return result

    def run_shell(self, command: str, **callbacks: Any) -> ExecResult:
        env = dict(self.activity.env) if self.activity is not None else {}
        self.ledger.start_round(f"$ {command}")
        try:
            result = self.executor.run_shell_direct(command, env, on_parent_exit=self._flush_on_exit, **callbacks)
        finally:
            self.ledger.end_round()
        self.last_command_key = None
        self.history.add("SHELL", command)
        return result

    def run_interactive(self, command: str) -> int:
        """Terminal-attached run; output is not captured into the transcript."""
        env = dict(self.activity.env) if self.activity is not None else {}
        code = self.executor.run_interactive(command, env)
        self.history.add("SHELL", command)
        return code

    def build_context(self, user_input: str) -> str:
        return self.composer.build_llm_context(user_input, self.last_command_key)

    def ask_agent(self, user_input: str, agent: Optional[str] = None, **callbacks: Any) -> ExecResult:
        agent = agent or self.settings.default_agent
        # Built before the round starts: the question is not part of its own context.
        context = self.build_context(user_input)
        context_path = self.settings.context_path
        atomic_write_text(context_path, context)

        env: Dict[str, str] = dict(self.activity.env) if self.activity is not None else {}
        env[CONTEXT_FILE_ENV] = str(context_path)

        self.ledger.start_round(f"@{agent} {user_input}".strip())
        try:
            result = self.executor.run_agent_shell(
                self.settings.llm_shell,
                user_input,
                agent,
                env,
                on_parent_exit=self._flush_on_exit,
                **callbacks,
            )
        finally:
            self.ledger.end_round()
        self.history.add("LLM", user_input)
        return result

    def matching_skills(self, user_input: str) -> List[str]:
        return [s.name or s.pattern for s in self.composer.matching_skills(user_input)]

    def undo(self) -> Optional[UndoResult]:
        result = self.ledger.undo_last_round()
        if result is not None:
            logger.info(
                f"undo: removed {result.round.command!r}, erase {result.lines_to_erase} lines",
                extra={"session_id": self.session_id},
            )
        return result

    def clear(self) -> None:
        self.ledger.clear()
        self.last_command_key = None

    def close(self) -> None:
        self.interrupts.restore_sigint_handler()
        self.ledger.close()
