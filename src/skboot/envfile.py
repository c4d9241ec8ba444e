"""
Environment file loader.

Parses ``KEY=value`` text into a mapping and applies it to an environment
sink. The sink is ``os.environ`` at container start and a plain dict in
tests, so parsing never touches process state on its own.

Rules, per line after trimming whitespace:
    - empty, ``#...`` and ``/...`` lines are comments
    - split on the first ``=`` only; key and value are trimmed separately
    - lines without ``=`` or with an empty key or value are skipped
"""

from __future__ import annotations

import logging
import os
from typing import MutableMapping, Optional, Union

from .errors import EnvFileError

logger = logging.getLogger("skboot.envfile")

COMMENT_MARKERS = ("#", "/")


def parse_env(data: Union[str, bytes], source: str = "") -> dict[str, str]:
    """Parse environment file contents.

    Args:
        data: File contents. Bytes are decoded as UTF-8 line by line.
        source: Name used to tag errors.

    Returns:
        Mapping of variable name to value, later lines winning.

    Raises:
        EnvFileError: If a line cannot be decoded, naming its line number.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")

    parsed: dict[str, str] = {}
    for line_num, raw in enumerate(data.split(b"\n"), start=1):
        try:
            line = raw.rstrip(b"\r").decode("utf-8").strip()
        except UnicodeDecodeError as exc:
            raise EnvFileError(
                "envfile:parse", source or None, f"Unable to parse line {line_num}"
            ) from exc

        if not line or line.startswith(COMMENT_MARKERS):
            continue

        key, sep, value = line.partition("=")
        if not sep:
            continue

        key = key.strip()
        value = value.strip()
        if key and value:
            parsed[key] = value

    return parsed


def apply_env(
    values: dict[str, str],
    sink: Optional[MutableMapping[str, str]] = None,
) -> list[str]:
    """Write parsed variables into ``sink``, overwriting existing entries.

    Args:
        values: Output of :func:`parse_env`.
        sink: Target mapping. Defaults to ``os.environ``.

    Returns:
        Names of the variables applied.
    """
    target = os.environ if sink is None else sink
    for key, value in values.items():
        target[key] = value
    logger.debug("Applied %d environment variable(s)", len(values))
    return list(values)


def load_env(
    data: Union[str, bytes],
    sink: Optional[MutableMapping[str, str]] = None,
    source: str = "",
) -> list[str]:
    """Parse ``data`` and apply it to ``sink`` in one step."""
    return apply_env(parse_env(data, source=source), sink)
