from __future__ import annotations

from typing import Dict, List, Literal, Optional

HistoryMode = Literal["CMD", "LLM", "SHELL"]

MODES: tuple[HistoryMode, ...] = ("CMD", "LLM", "SHELL")
MAX_HISTORY_SIZE = 100


class ModeHistory:
    """Readline-style history for one input mode."""

    def __init__(self, max_size: int = MAX_HISTORY_SIZE) -> None:
        self.max_size = max(1, int(max_size))
        self.entries: List[str] = []  # oldest first
        self.position = -1  # -1 = not navigating
        self.pending = ""  # input captured when navigation started

    def add(self, entry: str) -> None:
        if not entry or not entry.strip():
            return
        if self.entries and self.entries[-1] == entry:
            return

        self.entries.append(entry)
        while len(self.entries) > self.max_size:
            self.entries.pop(0)

        self.reset_navigation()

    def navigate_up(self, current_input: str) -> Optional[str]:
        if not self.entries:
            return None

        if self.position == -1:
            self.pending = current_input
            self.position = len(self.entries)

        if self.position > 0:
            self.position -= 1
            return self.entries[self.position]

        # Clamp at the oldest entry.
        return self.entries[0]

    def navigate_down(self) -> Optional[str]:
        if self.position == -1:
            return None

        self.position += 1
        if self.position >= len(self.entries):
            self.position = -1
            result = self.pending
            self.pending = ""
            return result

        return self.entries[self.position]

    def reset_navigation(self) -> None:
        self.position = -1
        self.pending = ""

    def is_navigating(self) -> bool:
        return self.position != -1


class HistoryManager:
    """One independent ModeHistory per input mode; unknown modes are ignored."""

    def __init__(self, max_size: int = MAX_HISTORY_SIZE) -> None:
        self.histories: Dict[str, ModeHistory] = {m: ModeHistory(max_size) for m in MODES}

    def get_history(self, mode: str) -> Optional[ModeHistory]:
        return self.histories.get(mode)

    def add(self, mode: str, entry: str) -> None:
        history = self.get_history(mode)
        if history is not None:
            history.add(entry)

    def navigate_up(self, mode: str, current_input: str) -> Optional[str]:
        history = self.get_history(mode)
        if history is None:
            return None
        return history.navigate_up(current_input)

    def navigate_down(self, mode: str) -> Optional[str]:
        history = self.get_history(mode)
        if history is None:
            return None
        return history.navigate_down()

    def reset_navigation(self, mode: str) -> None:
        history = self.get_history(mode)
        if history is not None:
            history.reset_navigation()
