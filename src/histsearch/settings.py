"""Settings persistence for histsearch."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, TypedDict

CACHE_DIR = Path.home() / ".cache" / "histsearch"
SETTINGS_PATH = CACHE_DIR / "settings.json"
DEFAULT_DB_PATH = CACHE_DIR / "history.db"

DEFAULT_WORD_CHARS = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"

# Terminals shorter than this get the compact layout in auto style
COMPACT_HEIGHT_THRESHOLD = 14


class FilterMode(str, Enum):
    """Scope restricting which history records a query can return."""

    GLOBAL = "global"
    HOST = "host"
    SESSION = "session"
    DIRECTORY = "directory"

    def as_str(self) -> str:
        return self.value.upper()

    def next(self) -> FilterMode:
        modes = list(FilterMode)
        return modes[(modes.index(self) + 1) % len(modes)]


class SearchMode(str, Enum):
    PREFIX = "prefix"
    FULL_TEXT = "fulltext"
    FUZZY = "fuzzy"


class ExitMode(str, Enum):
    """What Esc resolves to."""

    RETURN_ORIGINAL = "return-original"
    RETURN_QUERY = "return-query"


class WordJumpMode(str, Enum):
    EMACS = "emacs"
    SUBL = "subl"


class Style(str, Enum):
    AUTO = "auto"
    COMPACT = "compact"
    FULL = "full"


class SettingsDict(TypedDict, total=False):
    """On-disk settings schema."""

    filter_mode: str
    filter_mode_shell_up_key_binding: str | None
    shell_up_key_binding: bool
    search_mode: str
    exit_mode: str
    word_chars: str
    word_jump_mode: str
    scroll_context_lines: int
    show_preview: bool
    style: str
    update_check: bool
    db_path: str


@dataclass(frozen=True)
class Settings:
    """Options for one interactive session, passed explicitly to every consumer."""

    filter_mode: FilterMode = FilterMode.GLOBAL
    filter_mode_shell_up_key_binding: FilterMode | None = None
    shell_up_key_binding: bool = False
    search_mode: SearchMode = SearchMode.FUZZY
    exit_mode: ExitMode = ExitMode.RETURN_ORIGINAL
    word_chars: str = DEFAULT_WORD_CHARS
    word_jump_mode: WordJumpMode = WordJumpMode.EMACS
    scroll_context_lines: int = 1
    show_preview: bool = False
    style: Style = Style.AUTO
    update_check: bool = True
    db_path: Path = DEFAULT_DB_PATH

    @property
    def initial_filter_mode(self) -> FilterMode:
        """Filter mode a new session starts in.

        When invoked through the shell up-arrow binding, the dedicated
        override wins if one is configured.
        """
        if self.shell_up_key_binding and self.filter_mode_shell_up_key_binding is not None:
            return self.filter_mode_shell_up_key_binding
        return self.filter_mode

    def is_compact(self, terminal_height: int) -> bool:
        if self.style is Style.COMPACT:
            return True
        if self.style is Style.FULL:
            return False
        return terminal_height < COMPACT_HEIGHT_THRESHOLD


def _enum_field(enum_type: type[Enum], raw: Any, default: Any) -> Any:
    try:
        return enum_type(raw)
    except ValueError:
        return default


def settings_from_dict(data: dict[str, Any]) -> Settings:
    """Build Settings from raw JSON data, replacing each invalid field with its default."""
    defaults = Settings()

    shell_up_override = data.get("filter_mode_shell_up_key_binding")
    if shell_up_override is not None:
        shell_up_override = _enum_field(FilterMode, shell_up_override, None)

    scroll_context_lines = data.get("scroll_context_lines", defaults.scroll_context_lines)
    if not isinstance(scroll_context_lines, int) or scroll_context_lines < 0:
        scroll_context_lines = defaults.scroll_context_lines

    word_chars = data.get("word_chars", defaults.word_chars)
    if not isinstance(word_chars, str) or not word_chars:
        word_chars = defaults.word_chars

    db_path = data.get("db_path")

    return Settings(
        filter_mode=_enum_field(FilterMode, data.get("filter_mode"), defaults.filter_mode),
        filter_mode_shell_up_key_binding=shell_up_override,
        shell_up_key_binding=bool(data.get("shell_up_key_binding", False)),
        search_mode=_enum_field(SearchMode, data.get("search_mode"), defaults.search_mode),
        exit_mode=_enum_field(ExitMode, data.get("exit_mode"), defaults.exit_mode),
        word_chars=word_chars,
        word_jump_mode=_enum_field(
            WordJumpMode, data.get("word_jump_mode"), defaults.word_jump_mode
        ),
        scroll_context_lines=scroll_context_lines,
        show_preview=bool(data.get("show_preview", defaults.show_preview)),
        style=_enum_field(Style, data.get("style"), defaults.style),
        update_check=bool(data.get("update_check", defaults.update_check)),
        db_path=Path(db_path).expanduser() if isinstance(db_path, str) else defaults.db_path,
    )


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from the cache file. Returns defaults if missing or corrupted."""
    path = path or SETTINGS_PATH
    if not path.exists():
        return Settings()

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError):
        # Corrupted or unreadable - return defaults
        return Settings()

    if not isinstance(data, dict):
        return Settings()
    return settings_from_dict(data)


def save_settings(settings: Settings, path: Path | None = None) -> None:
    """Save settings to the cache file."""
    path = path or SETTINGS_PATH
    data: SettingsDict = {
        "filter_mode": settings.filter_mode.value,
        "filter_mode_shell_up_key_binding": (
            settings.filter_mode_shell_up_key_binding.value
            if settings.filter_mode_shell_up_key_binding
            else None
        ),
        "shell_up_key_binding": settings.shell_up_key_binding,
        "search_mode": settings.search_mode.value,
        "exit_mode": settings.exit_mode.value,
        "word_chars": settings.word_chars,
        "word_jump_mode": settings.word_jump_mode.value,
        "scroll_context_lines": settings.scroll_context_lines,
        "show_preview": settings.show_preview,
        "style": settings.style.value,
        "update_check": settings.update_check,
        "db_path": str(settings.db_path),
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
