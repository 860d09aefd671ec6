"""Shell command execution with variable substitution and output capture.

Captured runs inherit stdin (so prompts still work) and pipe stdout/stderr.
Two reader threads push decoded chunks into a queue; the calling thread
drains it, so the ledger and the per-chunk callbacks only ever run on the
caller's thread, in the order each stream produced them.
"""
from __future__ import annotations

import codecs
import logging
import os
import queue
import re
import signal
import subprocess
import sys
import threading
from typing import IO, Any, Callable, Dict, List, Optional, Tuple

from ..contracts.v1 import Activity, ExecResult
from ..kernel.interrupts import InterruptCoordinator
from ..kernel.ledger import RoundLedger
from ..kernel.template import substitute
from ..kernel.variables import VariableStore, format_all

logger = logging.getLogger("shellmate.executor")

ChunkCallback = Callable[[str], Any]

_POLL_SECONDS = 0.05
_READ_SIZE = 4096


def _exit_status(returncode: Optional[int]) -> Tuple[int, Optional[str]]:
    """Map Popen.returncode to (code, signal name).

    A negative returncode means the child died from a signal; report it as
    128 + signum (shell convention) rather than as success.
    """
    if returncode is None:
        return 0, None
    if returncode < 0:
        signum = -returncode
        try:
            name = signal.Signals(signum).name
        except ValueError:
            name = f"SIG{signum}"
        return 128 + signum, name
    return int(returncode), None


def _pump(stream: IO[bytes], name: str, out: "queue.Queue[Tuple[str, str]]") -> None:
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    try:
        for data in iter(lambda: stream.read1(_READ_SIZE), b""):
            text = decoder.decode(data)
            if text:
                out.put((name, text))
        tail = decoder.decode(b"", final=True)
        if tail:
            out.put((name, tail))
    except (OSError, ValueError):
        pass
    finally:
        try:
            stream.close()
        except Exception:
            pass


def _kill_and_reap(proc: "subprocess.Popen[bytes]", readers: List[threading.Thread]) -> None:
    try:
        proc.kill()
    except (ProcessLookupError, OSError):
        pass
    try:
        proc.wait()
    except OSError:
        pass
    # Grandchildren may still hold the pipes open; readers are daemons.
    for t in readers:
        t.join(timeout=1.0)


def render_agent_command(template: str, user_input: str, agent: str, buffer_path: str) -> str:
    """Expand `$_BUFFER`, `$_AGENT` and `$*` (in that order).

    `$*` receives the raw user input without any shell escaping; callers own
    the quoting of whatever they pass in.
    """
    command = template or ""
    command = re.sub(r"\$_BUFFER\b", lambda _m: buffer_path, command)
    command = command.replace("${_BUFFER}", buffer_path)
    command = re.sub(r"\$_AGENT\b", lambda _m: agent, command)
    command = command.replace("${_AGENT}", agent)
    command = command.replace("$*", user_input)
    return command


class ShellExecutor:
    def __init__(
        self,
        *,
        ledger: RoundLedger,
        interrupts: InterruptCoordinator,
        store: VariableStore,
        activity_provider: Callable[[], Optional[Activity]],
        substitute_fn: Callable[[str, Dict[str, str], str], str] = substitute,
    ) -> None:
        self._ledger = ledger
        self._interrupts = interrupts
        self._store = store
        self._activity = activity_provider
        self._substitute = substitute_fn

    @staticmethod
    def _env(env: Optional[Dict[str, str]]) -> Dict[str, str]:
        proc_env = os.environ.copy()
        if env:
            proc_env.update({k: str(v) for k, v in env.items() if isinstance(k, str) and v is not None})
        return proc_env

    def run_interactive(self, command: str, env: Optional[Dict[str, str]] = None) -> int:
        """Run with stdin/stdout/stderr attached to the terminal. Nothing is captured."""
        try:
            proc = subprocess.Popen(command, shell=True, env=self._env(env))
        except OSError as e:
            logger.error(f"spawn failed: {e}")
            print(f"Error: {e}", file=sys.stderr)
            return 1

        while True:
            try:
                returncode = proc.wait()
                break
            except KeyboardInterrupt:
                # The child shares the terminal and already received the SIGINT.
                continue
        return _exit_status(returncode)[0]

    def run_captured(
        self,
        command: str,
        env: Optional[Dict[str, str]] = None,
        *,
        on_stdout: Optional[ChunkCallback] = None,
        on_stderr: Optional[ChunkCallback] = None,
        on_parent_exit: Optional[Callable[[], Any]] = None,
    ) -> ExecResult:
        try:
            proc = subprocess.Popen(
                command,
                shell=True,
                stdin=None,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=self._env(env),
            )
        except OSError as e:
            self._interrupts.unregister()
            logger.error(f"spawn failed: {e}")
            return ExecResult(code=1, stdout="", stderr=str(e), command=command)

        self._interrupts.register(proc, on_parent_exit)
        logger.debug(f"spawned: {command}", extra={"pid": proc.pid})

        chunks: "queue.Queue[Tuple[str, str]]" = queue.Queue()
        readers = [
            threading.Thread(target=_pump, args=(proc.stdout, "stdout", chunks), name="shellmate-stdout", daemon=True),
            threading.Thread(target=_pump, args=(proc.stderr, "stderr", chunks), name="shellmate-stderr", daemon=True),
        ]
        for t in readers:
            t.start()

        stdout: List[str] = []
        stderr: List[str] = []
        try:
            while True:
                try:
                    stream, text = chunks.get(timeout=_POLL_SECONDS)
                except queue.Empty:
                    if proc.poll() is not None and not any(t.is_alive() for t in readers) and chunks.empty():
                        break
                    continue
                except KeyboardInterrupt:
                    if not self._interrupts.handle_interrupt():
                        raise
                    continue

                self._ledger.add_output(text)
                if stream == "stdout":
                    stdout.append(text)
                    if on_stdout is not None:
                        on_stdout(text)
                else:
                    stderr.append(text)
                    if on_stderr is not None:
                        on_stderr(text)
        except BaseException:
            # Callback error or an unhandled Ctrl+C: the child must not outlive the call.
            logger.warning("aborting captured run, killing child", extra={"pid": proc.pid})
            _kill_and_reap(proc, readers)
            raise
        finally:
            self._interrupts.unregister()

        code, sig = _exit_status(proc.wait())
        if sig is not None:
            logger.info(f"child terminated by {sig}", extra={"pid": proc.pid, "signal": sig})
        return ExecResult(code=code, stdout="".join(stdout), stderr="".join(stderr), command=command, signal=sig)

    def run_template(
        self,
        template: str,
        input: str = "",
        env: Optional[Dict[str, str]] = None,
        **callbacks: Any,
    ) -> ExecResult:
        formatted = format_all(self._store.get_all(), self._store.get_all_definitions())
        command = self._substitute(template, formatted, input)
        return self.run_captured(command, env, **callbacks)

    def get_command_template(self, key: str) -> Optional[str]:
        activity = self._activity()
        if activity is None:
            return None
        return activity.command_template(key)

    def get_command_keys(self) -> List[str]:
        activity = self._activity()
        if activity is None:
            return []
        return list(activity.commands.keys())

    def is_command_key(self, key: str) -> bool:
        return self.get_command_template(key) is not None

    def run_command(
        self,
        key: str,
        input: str = "",
        env: Optional[Dict[str, str]] = None,
        **callbacks: Any,
    ) -> Optional[ExecResult]:
        """Run the active activity's command `key`; None when there is no such command."""
        activity = self._activity()
        if activity is None:
            return None
        template = activity.command_template(key)
        if template is None:
            return None

        merged = dict(activity.env)
        merged.update(env or {})
        logger.info(f"run command {key}", extra={"command_key": key, "activity": activity.name})
        return self.run_template(template, input, merged, **callbacks)

    def run_agent_shell(
        self,
        template: str,
        user_input: str,
        agent: str,
        env: Optional[Dict[str, str]] = None,
        **callbacks: Any,
    ) -> ExecResult:
        buffer_path = self._ledger.buffer_path
        command = render_agent_command(template, user_input, agent, str(buffer_path) if buffer_path else "")
        logger.info("run agent shell", extra={"agent": agent})
        return self.run_captured(command, env, **callbacks)

    def run_shell_direct(self, command: str, env: Optional[Dict[str, str]] = None, **callbacks: Any) -> ExecResult:
        return self.run_captured(command, env, **callbacks)