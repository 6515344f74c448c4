"""Import existing bash and zsh history files into the database."""

from __future__ import annotations

import json
import os
import re
import sqlite3
import uuid
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from histsearch.database import SCHEMA_VERSION, save_history
from histsearch.history import HistoryRecord, current_hostname
from histsearch.logger import get_logger
from histsearch.settings import CACHE_DIR

MANIFEST_PATH = CACHE_DIR / "import_manifest.json"

SUPPORTED_SHELLS = ("bash", "zsh")

# ": <start>:<elapsed seconds>;<command>"
_ZSH_EXTENDED = re.compile(r"^: *(\d+):(\d+);(.*)$", re.DOTALL)
_BASH_TIMESTAMP = re.compile(r"^#(\d+)$")


@dataclass
class ParsedEntry:
    command: str
    timestamp: float | None = None
    duration: int = -1


def default_history_path(shell: str) -> Path:
    if shell == "zsh":
        histfile = os.environ.get("HISTFILE")
        return Path(histfile) if histfile else Path.home() / ".zsh_history"
    if shell == "bash":
        return Path.home() / ".bash_history"
    raise ValueError(f"unsupported shell: {shell!r} (expected one of {', '.join(SUPPORTED_SHELLS)})")


def detect_shell() -> str:
    """Shell named by $SHELL, defaulting to bash."""
    name = Path(os.environ.get("SHELL", "")).name
    return name if name in SUPPORTED_SHELLS else "bash"


def parse_bash_history(lines: Iterable[str]) -> Iterator[ParsedEntry]:
    """Parse ~/.bash_history, honouring the "#<epoch>" lines HISTTIMEFORMAT adds."""
    timestamp: float | None = None
    for line in lines:
        line = line.rstrip("\n")
        match = _BASH_TIMESTAMP.match(line)
        if match:
            timestamp = float(match.group(1))
            continue
        if not line.strip():
            continue
        yield ParsedEntry(command=line, timestamp=timestamp)
        timestamp = None


def parse_zsh_history(lines: Iterable[str]) -> Iterator[ParsedEntry]:
    """Parse plain or EXTENDED_HISTORY zsh files.

    Multi-line commands are stored with a trailing backslash on every line
    but the last.
    """
    pending: list[str] = []
    for line in lines:
        line = line.rstrip("\n")
        if line.endswith("\\"):
            pending.append(line[:-1])
            continue
        pending.append(line)
        entry = "\n".join(pending)
        pending = []

        match = _ZSH_EXTENDED.match(entry)
        if match:
            command = match.group(3)
            parsed = ParsedEntry(
                command=command,
                timestamp=float(match.group(1)),
                duration=int(match.group(2)) * 1000,
            )
        else:
            parsed = ParsedEntry(command=entry)

        if parsed.command.strip():
            yield parsed


def _load_manifest() -> dict[str, Any] | None:
    if not MANIFEST_PATH.exists():
        return None
    try:
        with open(MANIFEST_PATH, encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError):
        return None
    if not isinstance(data, dict) or data.get("schema_version") != SCHEMA_VERSION:
        return None
    return data


def _file_signature(path: Path) -> dict[str, float]:
    stat = path.stat()
    return {"size": stat.st_size, "mtime": stat.st_mtime}


def is_import_current(path: Path) -> bool:
    """True when path is unchanged since it was last imported."""
    manifest = _load_manifest()
    if manifest is None:
        return False
    return manifest.get("files", {}).get(str(path.resolve())) == _file_signature(path)


def _save_manifest_entry(path: Path) -> None:
    manifest = _load_manifest() or {"schema_version": SCHEMA_VERSION, "files": {}}
    manifest["files"][str(path.resolve())] = _file_signature(path)
    MANIFEST_PATH.parent.mkdir(parents=True, exist_ok=True)
    with open(MANIFEST_PATH, "w", encoding="utf-8") as f:
        json.dump(manifest, f)


def build_records(
    entries: list[ParsedEntry], path: Path, shell: str, hostname: str
) -> list[HistoryRecord]:
    """Turn parsed entries into records with stable ids.

    Entries without a timestamp are spaced one second apart, ending at the
    file's modification time, so their order survives.
    """
    mtime = path.stat().st_mtime
    total = len(entries)
    records: list[HistoryRecord] = []
    for index, entry in enumerate(entries):
        timestamp = entry.timestamp
        if timestamp is None:
            timestamp = mtime - (total - index)
        record_id = uuid.uuid5(uuid.NAMESPACE_URL, f"{path.resolve()}:{index}:{entry.command}")
        records.append(
            HistoryRecord(
                id=record_id.hex,
                command=entry.command,
                timestamp=timestamp,
                duration=entry.duration,
                exit=0,
                cwd="unknown",
                session=f"import-{shell}",
                hostname=hostname,
            )
        )
    return records


def import_history(
    conn: sqlite3.Connection,
    shell: str | None = None,
    path: Path | None = None,
    force: bool = False,
) -> int:
    """Import a shell history file. Returns the number of new records stored.

    Files unchanged since their last import are skipped unless force is set;
    records already present are ignored, so re-importing is safe.
    """
    logger = get_logger()
    shell = shell or detect_shell()
    path = path or default_history_path(shell)
    if shell not in SUPPORTED_SHELLS:
        raise ValueError(f"unsupported shell: {shell!r}")

    if not force and is_import_current(path):
        logger.info("History file unchanged, skipping import", path=str(path))
        return 0

    with open(path, encoding="utf-8", errors="replace") as f:
        parser = parse_zsh_history if shell == "zsh" else parse_bash_history
        entries = list(parser(f))

    records = build_records(entries, path, shell, current_hostname())
    inserted = save_history(conn, records)
    _save_manifest_entry(path)

    logger.info(
        "History imported", path=str(path), shell=shell, parsed=len(entries), inserted=inserted
    )
    return inserted
