import os
import tempfile
import unittest
from pathlib import Path

ACTIVITIES_YAML = """
activities:
  git:
    description: git helpers
    env:
      GIT_PAGER: cat
    commands:
      st: git status --short
      log:
        template: git log -n $N
        llm_prepend: Summarize the log.
    skills:
      - name: conflicts
        pattern: "merge|conflict"
        llm_prepend: Explain how to resolve conflicts.
    llm_context: "${_LLM_PREPEND}\\n${_SCREEN}"
    variables:
      N: {type: int, default: 5}
  empty:
"""


class TestActivities(unittest.TestCase):
    def test_parse(self) -> None:
        from shellmate.contracts.v1 import CommandSpec
        from shellmate.kernel.activity import parse_activities

        acts = parse_activities(ACTIVITIES_YAML)
        self.assertEqual(sorted(acts), ["empty", "git"])
        git = acts["git"]
        self.assertEqual(git.name, "git")
        self.assertEqual(git.command_template("st"), "git status --short")
        self.assertIsInstance(git.commands["log"], CommandSpec)
        self.assertEqual(git.command_template("log"), "git log -n $N")
        self.assertEqual(git.command_prepend("log"), "Summarize the log.")
        self.assertEqual(git.command_prepend("st"), "")
        self.assertIsNone(git.command_template("nope"))
        self.assertEqual(git.skills[0].name, "conflicts")
        self.assertEqual(git.variables["N"].type, "int")
        self.assertEqual(git.llm_context, "${_LLM_PREPEND}\n${_SCREEN}")
        self.assertEqual(acts["empty"].commands, {})

    def test_bare_mapping_and_empty(self) -> None:
        from shellmate.kernel.activity import parse_activities

        self.assertEqual(parse_activities(""), {})
        acts = parse_activities("one:\n  commands:\n    hi: echo hi\n")
        self.assertEqual(acts["one"].command_template("hi"), "echo hi")

    def test_invalid(self) -> None:
        from shellmate.kernel.activity import parse_activities

        for text in ("- a\n- b\n", "activities: [1, 2]\n", "x: 3\n", "a: {skills: 5}\n", "a: [\n"):
            with self.assertRaises(ValueError, msg=text):
                parse_activities(text)

    def test_activity_set(self) -> None:
        from shellmate.kernel.activity import ActivitySet, parse_activities

        s = ActivitySet(parse_activities(ACTIVITIES_YAML))
        self.assertIsNone(s.current)
        self.assertEqual(s.select("git").name, "git")
        self.assertEqual(s.current.name, "git")
        with self.assertRaises(KeyError):
            s.select("missing")
        self.assertIsNone(s.select(None))
        self.assertIsNone(s.current)


class TestSettings(unittest.TestCase):
    def test_defaults_when_missing(self) -> None:
        from shellmate.kernel.settings import load_settings

        with tempfile.TemporaryDirectory() as td:
            s = load_settings(Path(td))
            self.assertEqual(s.history_size, 100)
            self.assertEqual(s.buffer_path, Path(td) / "buffer.log")
            self.assertEqual(s.context_path, Path(td) / "context.txt")

    def test_roundtrip_and_coercion(self) -> None:
        from shellmate.kernel.settings import Settings, load_settings, save_settings

        with tempfile.TemporaryDirectory() as td:
            home = Path(td)
            save_settings(Settings(home=home, default_agent="claude", history_size=20, buffer_file="/abs/buf.log"))
            s = load_settings(home)
            self.assertEqual(s.default_agent, "claude")
            self.assertEqual(s.history_size, 20)
            self.assertEqual(s.buffer_path, Path("/abs/buf.log"))

            (home / "settings.yaml").write_text("history_size: 'lots'\nlog_level: debug\n", encoding="utf-8")
            s = load_settings(home)
            self.assertEqual(s.history_size, 100)
            self.assertEqual(s.log_level, "DEBUG")

    def test_broken_file_falls_back(self) -> None:
        from shellmate.kernel.settings import load_settings

        with tempfile.TemporaryDirectory() as td:
            (Path(td) / "settings.yaml").write_text("[unclosed\n", encoding="utf-8")
            with self.assertLogs("shellmate.settings", level="WARNING"):
                s = load_settings(Path(td))
            self.assertEqual(s.default_agent, "default")

    def test_home_from_env(self) -> None:
        from shellmate.paths import shellmate_home

        old = os.environ.get("SHELLMATE_HOME")
        try:
            with tempfile.TemporaryDirectory() as td:
                os.environ["SHELLMATE_HOME"] = td
                self.assertEqual(shellmate_home(), Path(td).resolve())
        finally:
            if old is None:
                os.environ.pop("SHELLMATE_HOME", None)
            else:
                os.environ["SHELLMATE_HOME"] = old


if __name__ == "__main__":
    unittest.main()
