"""In-memory round ledger mirrored to the persisted transcript (buffer.log).

A round is one execution cycle: the displayed command plus every output chunk
it produced. Completed rounds are appended to the log; undo rewrites it.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, NamedTuple, Optional, TextIO

from ..util.fs import atomic_write_text

logger = logging.getLogger("shellmate.ledger")


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class Round:
    def __init__(self, command: str = "") -> None:
        self.command = command
        self.output: List[str] = []
        # Terminal rows this round occupies; driven by the renderer, not by newline counting.
        self.line_count = 0
        self.started_at = utc_now_iso()

    def add_output(self, text: str) -> None:
        self.output.append(text)

    def add_lines(self, count: int = 1) -> None:
        self.line_count += count

    def get_line_count(self) -> int:
        return self.line_count

    def get_output(self) -> str:
        return "".join(self.output)

    def render(self) -> str:
        """Render as it appears in the log, without the trailing separator."""
        result = ""
        if self.command:
            result += self.command + "\n"
        result += self.get_output()
        return result

    def render_block(self) -> str:
        content = self.render()
        if not content.endswith("\n"):
            content += "\n"
        return content

    def __repr__(self) -> str:
        return f"Round(command={self.command!r}, chunks={len(self.output)}, lines={self.line_count})"


class UndoResult(NamedTuple):
    round: Round
    # Cumulative rows to blank across consecutive undos.
    lines_to_erase: int


class RoundLedger:
    def __init__(self, buffer_path: Optional[Path] = None) -> None:
        self._buffer_path = Path(buffer_path) if buffer_path is not None else None
        self._stream: Optional[TextIO] = None
        self.rounds: List[Round] = []
        self.current_round: Optional[Round] = None
        self.blanked_line_count = 0

    @property
    def buffer_path(self) -> Optional[Path]:
        return self._buffer_path

    def init(self) -> None:
        """Truncate the log and open it for appending."""
        self.rounds = []
        self.current_round = None
        self.blanked_line_count = 0
        if self._buffer_path is None:
            return
        self.close()
        try:
            self._buffer_path.parent.mkdir(parents=True, exist_ok=True)
            self._buffer_path.write_text("", encoding="utf-8")
            self._stream = self._buffer_path.open("a", encoding="utf-8")
        except OSError as e:
            logger.error(f"Error initializing {self._buffer_path}: {e}")
            self._stream = None

    def start_round(self, command: str) -> Round:
        self.blanked_line_count = 0
        self.current_round = Round(command)
        self.rounds.append(self.current_round)
        # Nothing is written yet: the log must not contain the round while it
        # is still running (agents read the log as context for this round).
        return self.current_round

    def add_output(self, text: str) -> None:
        if self.current_round is not None:
            self.current_round.add_output(text)

    def add_lines(self, count: int = 1) -> None:
        if self.current_round is not None:
            self.current_round.add_lines(count)

    def add_trailing_lines(self, count: int = 1) -> None:
        """Charge rows printed after a round closed (prompt echo, final newline) to it."""
        target = self.current_round or (self.rounds[-1] if self.rounds else None)
        if target is not None:
            target.add_lines(count)

    def end_round(self) -> None:
        if self.current_round is not None and self._stream is not None:
            try:
                self._stream.write(self.current_round.render_block())
                self._stream.write("\n")
                self._stream.flush()
            except OSError as e:
                logger.error(f"Error appending to {self._buffer_path}: {e}")
        self.current_round = None

    def get_last_round_line_count(self) -> int:
        if not self.rounds:
            return 0
        return self.rounds[-1].get_line_count()

    def undo_last_round(self) -> Optional[UndoResult]:
        if not self.rounds:
            return None

        removed = self.rounds.pop()
        if removed is self.current_round:
            self.current_round = None
        # +1 for the blank separator line written after every round.
        self.blanked_line_count += removed.get_line_count() + 1
        self._sync_to_file()
        return UndoResult(round=removed, lines_to_erase=self.blanked_line_count)

    def clear(self) -> None:
        self.rounds = []
        self.current_round = None
        self.blanked_line_count = 0
        self._sync_to_file()

    def get_rounds(self) -> List[Round]:
        return list(self.rounds)

    def get_round_count(self) -> int:
        return len(self.rounds)

    def render_log(self) -> str:
        return "".join(r.render_block() + "\n" for r in self.rounds)

    def render_screen(self) -> str:
        """Completed rounds only; the active round never leaks into LLM context."""
        blocks = [r.render_block() for r in self.rounds if r is not self.current_round]
        return "\n".join(blocks)

    def _sync_to_file(self) -> None:
        """Rewrite the whole log from memory (arbitrary deletions cannot be appended)."""
        if self._buffer_path is None:
            return
        self.close()
        try:
            atomic_write_text(self._buffer_path, self.render_log())
            self._stream = self._buffer_path.open("a", encoding="utf-8")
        except OSError as e:
            logger.error(f"Error syncing {self._buffer_path}: {e}")
            self._stream = None

    def close(self) -> None:
        if self._stream is not None:
            try:
                self._stream.close()
            except OSError:
                pass
            self._stream = None
