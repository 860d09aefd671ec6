from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict


class ExecResult(BaseModel):
    """Outcome of one captured shell execution.

    `signal` is set (e.g. "SIGKILL") when the child was terminated by a signal;
    `code` is then 128 + signal number, never 0.
    """

    code: int = 0
    stdout: str = ""
    stderr: str = ""
    command: str = ""
    signal: Optional[str] = None

    model_config = ConfigDict(extra="forbid")

    @property
    def ok(self) -> bool:
        return self.code == 0 and self.signal is None
