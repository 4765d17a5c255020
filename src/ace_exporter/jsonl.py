"""Streaming reader for newline-delimited JSON files.

Codex session logs are append-only and can grow large, so files are read
one line at a time and a single bad line never aborts the scan.
"""

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterator, Optional, Union

logger = logging.getLogger(__name__)

LineFilter = Callable[[str, int], bool]


class LineControl(Enum):
    """What a line handler wants the reader to do next."""

    CONTINUE = "continue"
    STOP = "stop"


LineHandler = Callable[[Any, int], Optional[LineControl]]


def iter_json_lines(
    path: Union[str, Path],
    warnings: list[str],
    should_parse_line: Optional[LineFilter] = None,
) -> Iterator[tuple[int, Any]]:
    """Yield ``(line_number, parsed)`` for every decodable line of ``path``.

    Blank lines are skipped. Lines rejected by ``should_parse_line`` are
    skipped before decoding. Malformed lines add a warning to ``warnings``.
    Closing the generator closes the file.
    """
    with open(path, encoding="utf-8", errors="replace") as f:
        for line_num, raw_line in enumerate(f, 1):
            line = raw_line.strip()
            if not line:
                continue
            if should_parse_line is not None and not should_parse_line(line, line_num):
                continue
            try:
                parsed = json.loads(line)
            except (ValueError, RecursionError) as e:
                logger.debug("Bad JSON at %s:%d: %s", path, line_num, e)
                warnings.append(f"Skipped malformed JSON in {path}:{line_num}")
                continue
            yield line_num, parsed


def for_each_json_line(
    path: Union[str, Path],
    handler: LineHandler,
    should_parse_line: Optional[LineFilter] = None,
) -> list[str]:
    """Feed each parsed line to ``handler`` until it returns ``LineControl.STOP``.

    Returns the malformed-line warnings collected along the way.
    """
    warnings: list[str] = []
    lines = iter_json_lines(path, warnings, should_parse_line)
    try:
        for line_num, parsed in lines:
            if handler(parsed, line_num) is LineControl.STOP:
                break
    finally:
        lines.close()
    return warnings
