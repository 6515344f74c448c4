"""One-shot check for a newer published release."""

from __future__ import annotations

import re
from importlib.metadata import PackageNotFoundError, version

import httpx

from histsearch.logger import get_logger

PACKAGE_NAME = "histsearch"
RELEASES_URL = f"https://pypi.org/pypi/{PACKAGE_NAME}/json"
UPDATE_CHECK_TIMEOUT = 5.0


def current_version() -> str:
    try:
        return version(PACKAGE_NAME)
    except PackageNotFoundError:
        return "0.0.0"


def parse_version(text: str) -> tuple[int, ...]:
    """Numeric release components: "1.10.2rc1" -> (1, 10, 2)."""
    parts: list[int] = []
    for piece in text.strip().lstrip("v").split("."):
        match = re.match(r"\d+", piece)
        if match is None:
            break
        parts.append(int(match.group()))
    if not parts:
        raise ValueError(f"not a version: {text!r}")
    return tuple(parts)


async def check_for_update(
    installed: str | None = None,
    client: httpx.AsyncClient | None = None,
    timeout: float = UPDATE_CHECK_TIMEOUT,
) -> str | None:
    """Return the latest released version if it is newer than the installed one.

    Network and payload errors are logged and reported as "no update".
    If *client* is None, a temporary AsyncClient is created for this request.
    """
    installed = installed or current_version()
    logger = get_logger()
    try:
        if client is not None:
            response = await client.get(RELEASES_URL, timeout=timeout)
        else:
            async with httpx.AsyncClient() as tmp_client:
                response = await tmp_client.get(RELEASES_URL, timeout=timeout)
        response.raise_for_status()
        latest = str(response.json()["info"]["version"])
        newer = parse_version(latest) > parse_version(installed)
    except (httpx.HTTPError, KeyError, TypeError, ValueError) as e:
        logger.warning("Update check failed", error=str(e))
        return None

    if newer:
        logger.info("Update available", installed=installed, latest=latest)
        return latest
    return None
