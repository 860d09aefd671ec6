"""Escalating Ctrl+C handling for the running child process.

- 1st interrupt: SIGINT to the child
- 2nd interrupt: SIGKILL to the child
- 3rd interrupt: run the exit callback, then terminate this process

With no child registered an interrupt is reported as unhandled and the caller
decides what it means (usually: leave the REPL).
"""
from __future__ import annotations

import enum
import logging
import os
import signal
import weakref
from typing import Any, Callable, Optional, Protocol

logger = logging.getLogger("shellmate.interrupts")


class ProcessHandle(Protocol):
    def send_signal(self, sig: int) -> None: ...

    def kill(self) -> None: ...


class InterruptState(enum.Enum):
    IDLE = "idle"
    ARMED = "armed"
    ESCALATED = "escalated"
    TERMINATING = "terminating"


def _terminate_now() -> None:
    os._exit(0)


class InterruptCoordinator:
    def __init__(self, *, terminate: Optional[Callable[[], Any]] = None) -> None:
        self._proc_ref: Optional[weakref.ReferenceType] = None
        self._on_exit: Optional[Callable[[], Any]] = None
        self._state = InterruptState.IDLE
        self._count = 0
        self._terminate = terminate or _terminate_now
        self._prev_sigint: Any = None
        self._installed = False

    @property
    def state(self) -> InterruptState:
        return self._state

    def register(self, proc: ProcessHandle, on_exit: Optional[Callable[[], Any]] = None) -> None:
        """Track `proc` (non-owning) and re-arm the ladder."""
        self._proc_ref = weakref.ref(proc)
        self._on_exit = on_exit
        self._state = InterruptState.ARMED
        self._count = 0

    def unregister(self) -> None:
        self._proc_ref = None
        self._on_exit = None
        self._state = InterruptState.IDLE
        self._count = 0

    def _current(self) -> Optional[ProcessHandle]:
        if self._proc_ref is None:
            return None
        return self._proc_ref()

    def has_child_process(self) -> bool:
        return self._current() is not None

    def get_interrupt_count(self) -> int:
        return self._count

    def handle_interrupt(self) -> bool:
        """Advance the ladder. Returns False when no child is running."""
        proc = self._current()
        if proc is None:
            if self._state is not InterruptState.IDLE:
                self.unregister()
            return False

        self._count += 1

        if self._state is InterruptState.ARMED:
            self._state = InterruptState.ESCALATED
            logger.info("interrupt: forwarding SIGINT to child", extra={"signal": "SIGINT"})
            try:
                proc.send_signal(signal.SIGINT)
            except (ProcessLookupError, OSError):
                pass
        elif self._state is InterruptState.ESCALATED:
            self._state = InterruptState.TERMINATING
            logger.warning("interrupt: killing child", extra={"signal": "SIGKILL"})
            try:
                proc.kill()
            except (ProcessLookupError, OSError):
                pass
        else:
            logger.warning("interrupt: third press, exiting")
            callback = self._on_exit
            if callback is not None:
                try:
                    callback()
                except Exception:
                    logger.exception("exit callback failed")
            self._terminate()

        return True

    def _on_sigint(self, signum: int, frame: Any) -> None:
        if not self.handle_interrupt():
            raise KeyboardInterrupt

    def install_sigint_handler(self) -> None:
        """Route SIGINT through the ladder (main thread only)."""
        if self._installed:
            return
        self._prev_sigint = signal.signal(signal.SIGINT, self._on_sigint)
        self._installed = True

    def restore_sigint_handler(self) -> None:
        if not self._installed:
            return
        signal.signal(signal.SIGINT, self._prev_sigint or signal.default_int_handler)
        self._prev_sigint = None
        self._installed = False
