from __future__ import annotations

import argparse
import json
import shutil
import sys
from typing import Any, Dict, Optional, Tuple

from . import __version__
from .kernel.history import MODES
from .kernel.settings import Settings, load_settings
from .session import ShellSession
from .util.obslog import resolve_log_level, setup_root_json_logging

_ERASE_UP = "\x1b[1A\x1b[2K"


def _print_json(obj: Any) -> None:
    print(json.dumps(obj, ensure_ascii=False, indent=2))


class RowCounter:
    """Counts terminal rows consumed by streamed output (wrapping included)."""

    def __init__(self, width: Optional[int] = None) -> None:
        self.width = max(1, int(width or shutil.get_terminal_size((80, 24)).columns))
        self.col = 0

    def feed(self, text: str) -> int:
        rows = 0
        for i, segment in enumerate(text.split("\n")):
            if i > 0:
                rows += 1
                self.col = 0
            self.col += len(segment)
            while self.col > self.width:
                rows += 1
                self.col -= self.width
        return rows

    def finish(self) -> int:
        rows = 1 if self.col > 0 else 0
        self.col = 0
        return rows


def _stream_to_terminal(session: ShellSession) -> Tuple[Dict[str, Any], RowCounter]:
    counter = RowCounter()

    def _write(text: str) -> None:
        sys.stdout.write(text)
        sys.stdout.flush()
        session.ledger.add_lines(counter.feed(text))

    return {"on_stdout": _write, "on_stderr": _write}, counter


def _finish_round_output(session: ShellSession, counter: RowCounter) -> None:
    tail = counter.finish()
    if tail:
        sys.stdout.write("\n")
    # The echoed prompt row plus the unterminated last line.
    session.ledger.add_trailing_lines(1 + tail)
    sys.stdout.write("\n")
    sys.stdout.flush()


def _open_session(args: argparse.Namespace) -> ShellSession:
    settings = load_settings()
    session = ShellSession(settings)
    session.start()
    activity = str(getattr(args, "activity", "") or "").strip()
    if activity:
        session.use_activity(activity)
    return session


def _run_line(session: ShellSession, mode: str, line: str) -> None:
    callbacks, counter = _stream_to_terminal(session)

    if mode == "SHELL":
        session.run_shell(line, **callbacks)
    elif mode == "LLM":
        agent = None
        text = line
        if line.startswith("@") and " " in line:
            agent, text = line[1:].split(" ", 1)
        session.ask_agent(text, agent, **callbacks)
    else:
        key, _, rest = line.partition(" ")
        if session.run_command(key, rest, **callbacks) is None:
            print(f"unknown command: {key}")
            return
    _finish_round_output(session, counter)


def _meta(session: ShellSession, line: str) -> bool:
    """Handle `/...` REPL commands. Returns False to leave the REPL."""
    cmd, _, arg = line[1:].partition(" ")
    arg = arg.strip()
    if cmd in ("q", "quit", "exit"):
        return False
    if cmd == "use":
        try:
            activity = session.use_activity(arg or None)
            print(f"activity: {activity.name if activity else '(none)'}")
        except KeyError as e:
            print(str(e))
    elif cmd == "set":
        name, _, value = arg.partition(" ")
        try:
            session.store.set(name, value)
        except ValueError as e:
            print(str(e))
    elif cmd == "context":
        print(session.build_context(arg))
    elif cmd == "clear":
        session.clear()
    elif cmd == "keys":
        print(" ".join(session.executor.get_command_keys()))
    else:
        print(f"unknown: /{cmd}")
    return True


def cmd_repl(args: argparse.Namespace) -> int:
    from prompt_toolkit import PromptSession
    from prompt_toolkit.application import run_in_terminal
    from prompt_toolkit.document import Document
    from prompt_toolkit.key_binding import KeyBindings

    session = _open_session(args)
    state = {"mode": "CMD"}
    kb = KeyBindings()

    @kb.add("up")
    def history_up(event) -> None:
        buf = event.app.current_buffer
        text = session.history.navigate_up(state["mode"], buf.text)
        if text is not None:
            buf.document = Document(text, len(text))

    @kb.add("down")
    def history_down(event) -> None:
        buf = event.app.current_buffer
        text = session.history.navigate_down(state["mode"])
        if text is not None:
            buf.document = Document(text, len(text))

    @kb.add("c-t")
    def next_mode(event) -> None:
        session.history.reset_navigation(state["mode"])
        state["mode"] = MODES[(MODES.index(state["mode"]) + 1) % len(MODES)]
        event.app.invalidate()

    @kb.add("c-_")
    def undo_round(event) -> None:
        result = session.undo()
        if result is None:
            return

        def _blank() -> None:
            # Blank rows above the prompt; rows blanked by earlier undos are counted again.
            sys.stdout.write("\x1b7" + _ERASE_UP * result.lines_to_erase + "\x1b8")
            sys.stdout.flush()

        run_in_terminal(_blank)

    prompt = PromptSession(key_bindings=kb)
    session.interrupts.install_sigint_handler()
    try:
        while True:
            try:
                line = prompt.prompt(lambda: f"{state['mode'].lower()}> ")
            except (EOFError, KeyboardInterrupt):
                break
            line = line.strip()
            if not line:
                continue
            if line.startswith("/"):
                if not _meta(session, line):
                    break
                continue
            try:
                _run_line(session, state["mode"], line)
            except KeyboardInterrupt:
                break
    finally:
        session.close()
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    session = _open_session(args)
    try:
        result = session.run_command(args.key, " ".join(args.input or []), **_stream_to_terminal(session)[0])
    finally:
        session.close()
    if result is None:
        print(f"unknown command: {args.key}", file=sys.stderr)
        return 2
    return result.code


def cmd_sh(args: argparse.Namespace) -> int:
    session = _open_session(args)
    try:
        result = session.run_shell(args.command, **_stream_to_terminal(session)[0])
    finally:
        session.close()
    return result.code


def cmd_context(args: argparse.Namespace) -> int:
    session = _open_session(args)
    try:
        print(session.build_context(" ".join(args.input or [])))
    finally:
        session.close()
    return 0


def cmd_activities(_: argparse.Namespace) -> int:
    session = ShellSession(load_settings())
    out = []
    for name in session.activities.names():
        activity = session.activities.get(name)
        if activity is None:
            continue
        out.append(
            {
                "name": name,
                "description": activity.description,
                "commands": list(activity.commands.keys()),
                "skills": [s.name or s.pattern for s in activity.skills],
            }
        )
    _print_json(out)
    return 0


def cmd_version(_: argparse.Namespace) -> int:
    print(__version__)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="shellmate", description="Shell REPL with transcript capture and LLM context")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_repl = sub.add_parser("repl", help="Interactive session (Ctrl+T: switch mode, Ctrl+_: undo last round)")
    p_repl.add_argument("--activity", default="", help="Activity to select on start")
    p_repl.set_defaults(func=cmd_repl)

    p_run = sub.add_parser("run", help="Run an activity command by key")
    p_run.add_argument("key")
    p_run.add_argument("input", nargs="*")
    p_run.add_argument("--activity", default="", help="Activity (default: settings.default_activity)")
    p_run.set_defaults(func=cmd_run)

    p_sh = sub.add_parser("sh", help="Run a raw shell command with output capture")
    p_sh.add_argument("command")
    p_sh.add_argument("--activity", default="")
    p_sh.set_defaults(func=cmd_sh)

    p_ctx = sub.add_parser("context", help="Print the composed LLM context for an input")
    p_ctx.add_argument("input", nargs="*")
    p_ctx.add_argument("--activity", default="")
    p_ctx.set_defaults(func=cmd_context)

    p_act = sub.add_parser("activities", help="List configured activities")
    p_act.set_defaults(func=cmd_activities)

    p_ver = sub.add_parser("version", help="Show version")
    p_ver.set_defaults(func=cmd_version)
    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings: Settings = load_settings()
    setup_root_json_logging(component="shellmate", level=resolve_log_level(settings.log_level))
    try:
        return int(args.func(args))
    except (KeyError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
