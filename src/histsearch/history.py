"""History records and the shell context they are filtered against."""

from __future__ import annotations

import getpass
import os
import socket
import time
import uuid
from dataclasses import dataclass, field

SESSION_ENV_VAR = "HISTSEARCH_SESSION"


def new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class HistoryRecord:
    """A single command run in a shell."""

    command: str
    timestamp: float = field(default_factory=time.time)
    duration: int = -1  # milliseconds, -1 when unknown
    exit: int = 0
    cwd: str = ""
    session: str = ""
    hostname: str = ""
    id: str = field(default_factory=new_id)

    @property
    def display_duration(self) -> str:
        """Format the run time for display."""
        if self.duration < 0:
            return "-"
        return format_duration(self.duration / 1000)

    def display_ago(self, now: float | None = None) -> str:
        """Format how long ago the command ran."""
        now = time.time() if now is None else now
        return format_duration(max(0.0, now - self.timestamp)) + " ago"


def format_duration(seconds: float) -> str:
    """Render a duration in its single most significant unit (ms, s, m, h, d)."""
    if seconds < 1:
        return f"{int(seconds * 1000)}ms"
    if seconds < 60:
        return f"{int(seconds)}s"
    minutes = seconds / 60
    if minutes < 60:
        return f"{int(minutes)}m"
    hours = minutes / 60
    if hours < 24:
        return f"{int(hours)}h"
    return f"{int(hours / 24)}d"


@dataclass(frozen=True)
class Context:
    """Where the search was started from: used by the non-global filter modes."""

    session: str
    cwd: str
    hostname: str


def current_hostname() -> str:
    try:
        user = getpass.getuser()
    except (KeyError, OSError):
        # No passwd entry and no USER/LOGNAME (e.g. bare containers)
        user = "unknown"
    return f"{socket.gethostname()}:{user}"


def current_context() -> Context:
    """Describe the invoking shell.

    The shell integration exports a per-shell session id; without one the
    search gets a fresh id and the session filter matches nothing older.
    """
    return Context(
        session=os.environ.get(SESSION_ENV_VAR) or new_id(),
        cwd=os.getcwd(),
        hostname=current_hostname(),
    )
