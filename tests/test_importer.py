"""Tests for bash and zsh history import."""

from __future__ import annotations

import os
import sqlite3
from pathlib import Path

import pytest

from histsearch.database import history_count
from histsearch.importer import (
    ParsedEntry,
    build_records,
    default_history_path,
    detect_shell,
    import_history,
    is_import_current,
    parse_bash_history,
    parse_zsh_history,
)
from histsearch.search import list_history
from histsearch.settings import FilterMode

ZSH_HISTORY = """\
: 1700000000:5;make test
: 1700000100:0;for f in *; do\\
  echo $f\\
done
plain command
: 1700000200:0;git status
"""

BASH_HISTORY = """\
#1700000000
ls -la

#1700000050
cd /tmp
pwd
"""


@pytest.fixture
def zsh_file(tmp_path: Path) -> Path:
    path = tmp_path / ".zsh_history"
    path.write_text(ZSH_HISTORY)
    return path


@pytest.fixture
def bash_file(tmp_path: Path) -> Path:
    path = tmp_path / ".bash_history"
    path.write_text(BASH_HISTORY)
    return path


class TestParsers:
    def test_zsh_extended_history(self) -> None:
        entries = list(parse_zsh_history(ZSH_HISTORY.splitlines(keepends=True)))

        assert [e.command for e in entries] == [
            "make test",
            "for f in *; do\n  echo $f\ndone",
            "plain command",
            "git status",
        ]
        assert entries[0] == ParsedEntry("make test", 1700000000.0, 5000)
        assert entries[2].timestamp is None
        assert entries[2].duration == -1

    def test_bash_timestamps_apply_to_next_line(self) -> None:
        entries = list(parse_bash_history(BASH_HISTORY.splitlines(keepends=True)))

        assert [e.command for e in entries] == ["ls -la", "cd /tmp", "pwd"]
        assert [e.timestamp for e in entries] == [1700000000.0, 1700000050.0, None]

    def test_blank_lines_are_skipped(self) -> None:
        assert list(parse_bash_history(["\n", "   \n"])) == []
        assert list(parse_zsh_history([": 1700000000:0; \n"])) == []


class TestBuildRecords:
    def test_untimed_entries_end_at_file_mtime(self, tmp_path: Path) -> None:
        path = tmp_path / "history"
        path.write_text("a\nb\n")
        os.utime(path, (1700000000, 1700000000))

        records = build_records(
            [ParsedEntry("a"), ParsedEntry("b")], path, "bash", "box:dev"
        )

        assert [r.timestamp for r in records] == [1699999998.0, 1699999999.0]
        assert all(r.session == "import-bash" for r in records)
        assert all(r.hostname == "box:dev" for r in records)

    def test_ids_are_stable(self, tmp_path: Path) -> None:
        path = tmp_path / "history"
        path.write_text("a\n")
        first = build_records([ParsedEntry("a", 1.0)], path, "bash", "h")
        second = build_records([ParsedEntry("a", 1.0)], path, "bash", "h")
        assert first[0].id == second[0].id


class TestImportHistory:
    """Importing into the database."""

    def test_import_zsh(self, temp_db: sqlite3.Connection, zsh_file: Path, context) -> None:
        inserted = import_history(temp_db, shell="zsh", path=zsh_file)

        assert inserted == 4
        assert history_count(temp_db) == 4
        records = {r.command: r for r in list_history(temp_db, FilterMode.GLOBAL, context)}
        assert records["git status"].timestamp == 1700000200.0
        assert records["make test"].duration == 5000
        assert records["plain command"].session == "import-zsh"

    def test_reimport_is_skipped_when_unchanged(
        self, temp_db: sqlite3.Connection, bash_file: Path
    ) -> None:
        assert import_history(temp_db, shell="bash", path=bash_file) == 3
        assert is_import_current(bash_file)
        assert import_history(temp_db, shell="bash", path=bash_file) == 0

    def test_forced_reimport_adds_no_duplicates(
        self, temp_db: sqlite3.Connection, bash_file: Path
    ) -> None:
        import_history(temp_db, shell="bash", path=bash_file)
        assert import_history(temp_db, shell="bash", path=bash_file, force=True) == 0
        assert history_count(temp_db) == 3

    def test_appended_lines_are_imported(
        self, temp_db: sqlite3.Connection, bash_file: Path
    ) -> None:
        import_history(temp_db, shell="bash", path=bash_file)
        with open(bash_file, "a") as f:
            f.write("#1700000900\nuptime\n")

        assert not is_import_current(bash_file)
        assert import_history(temp_db, shell="bash", path=bash_file) == 1
        assert history_count(temp_db) == 4

    def test_unknown_shell(self, temp_db: sqlite3.Connection, bash_file: Path) -> None:
        with pytest.raises(ValueError):
            import_history(temp_db, shell="fish", path=bash_file)

    def test_missing_file(self, temp_db: sqlite3.Connection, tmp_path: Path) -> None:
        with pytest.raises(OSError):
            import_history(temp_db, shell="bash", path=tmp_path / "missing")


class TestShellDetection:
    def test_default_paths(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.delenv("HISTFILE", raising=False)
        assert default_history_path("bash") == Path.home() / ".bash_history"
        assert default_history_path("zsh") == Path.home() / ".zsh_history"

        monkeypatch.setenv("HISTFILE", str(tmp_path / "zhist"))
        assert default_history_path("zsh") == tmp_path / "zhist"

        with pytest.raises(ValueError):
            default_history_path("tcsh")

    @pytest.mark.parametrize(
        ("shell_env", "expected"),
        [("/usr/bin/zsh", "zsh"), ("/bin/bash", "bash"), ("/usr/bin/fish", "bash"), ("", "bash")],
    )
    def test_detect_shell(
        self, monkeypatch: pytest.MonkeyPatch, shell_env: str, expected: str
    ) -> None:
        monkeypatch.setenv("SHELL", shell_env)
        assert detect_shell() == expected
