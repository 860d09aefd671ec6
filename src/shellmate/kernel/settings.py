"""Global settings for shellmate.

Settings are stored in ~/.shellmate/settings.yaml (or $SHELLMATE_HOME) and cover:
- file locations (transcript, context file, activities)
- the agent command template used in LLM mode
- history size and log level
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml  # type: ignore

from ..paths import ensure_home
from ..util.conv import coerce_int
from ..util.fs import atomic_write_text

logger = logging.getLogger("shellmate.settings")

SETTINGS_FILENAME = "settings.yaml"

# `$_BUFFER`: transcript path, `$_AGENT`: agent name, `$*`: raw user input.
DEFAULT_LLM_SHELL = 'llm -m "$_AGENT" -s "$(cat "$SHELLMATE_CONTEXT_FILE")" "$*"'


@dataclass
class Settings:
    buffer_file: str = "buffer.log"
    context_file: str = "context.txt"
    activities_file: str = "activities.yaml"
    default_activity: str = ""
    llm_shell: str = DEFAULT_LLM_SHELL
    default_agent: str = "default"
    history_size: int = 100
    log_level: str = "WARNING"
    home: Path = field(default_factory=ensure_home, repr=False)

    def resolve(self, name: str) -> Path:
        p = Path(name).expanduser()
        return p if p.is_absolute() else self.home / p

    @property
    def buffer_path(self) -> Path:
        return self.resolve(self.buffer_file)

    @property
    def context_path(self) -> Path:
        return self.resolve(self.context_file)

    @property
    def activities_path(self) -> Path:
        return self.resolve(self.activities_file)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d.pop("home", None)
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any], *, home: Optional[Path] = None) -> "Settings":
        base = cls(home=home) if home is not None else cls()
        return cls(
            buffer_file=str(d.get("buffer_file") or base.buffer_file),
            context_file=str(d.get("context_file") or base.context_file),
            activities_file=str(d.get("activities_file") or base.activities_file),
            default_activity=str(d.get("default_activity") or ""),
            llm_shell=str(d.get("llm_shell") or base.llm_shell),
            default_agent=str(d.get("default_agent") or base.default_agent),
            history_size=coerce_int(d.get("history_size"), default=base.history_size, min_value=1, max_value=10_000),
            log_level=str(d.get("log_level") or base.log_level).upper(),
            home=base.home,
        )


def _settings_path(home: Path) -> Path:
    return home / SETTINGS_FILENAME


def load_settings(home: Optional[Path] = None) -> Settings:
    """Load settings.yaml; a missing or broken file yields defaults."""
    home = home or ensure_home()
    path = _settings_path(home)
    if not path.exists():
        return Settings(home=home)
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except Exception as e:
        logger.warning(f"ignoring unreadable {path}: {e}")
        return Settings(home=home)
    if not isinstance(data, dict):
        logger.warning(f"ignoring {path}: expected a mapping")
        return Settings(home=home)
    return Settings.from_dict(data, home=home)


def save_settings(settings: Settings) -> None:
    path = _settings_path(settings.home)
    atomic_write_text(path, yaml.safe_dump(settings.to_dict(), allow_unicode=True, sort_keys=False))
