"""Turn pasted or dropped text into existing filesystem paths."""

from __future__ import annotations

import os
from urllib.parse import unquote, urlparse

_FILE_SCHEME = "file://"


def _candidate_from_line(line: str) -> str:
    # file:// URLs (Finder and most file managers paste these)
    if line.startswith(_FILE_SCHEME):
        try:
            return unquote(urlparse(line).path)
        except ValueError:
            pass

    # "/path/to/file with spaces.pdf" or '/path/...'
    if len(line) >= 2 and line[0] == line[-1] and line[0] in ("'", '"'):
        return line[1:-1]

    # /path/to/file\ with\ spaces.pdf
    if "\\ " in line:
        return line.replace("\\ ", " ")

    # Anything else is taken verbatim. Splitting on spaces is unreliable
    # without more context, so a line is never broken into several paths.
    return line


def parse_file_paths(text: str) -> list[str]:
    """Parse pasted text into file paths that exist.

    Handles one path per line, quoted paths, backslash-escaped spaces and
    ``file://`` URLs. Candidates that don't exist are dropped silently;
    order is kept and duplicates are not removed.
    """
    lines = [line.strip() for line in text.split("\n")]
    candidates = [_candidate_from_line(line) for line in lines if line]
    return [path for path in candidates if os.path.exists(path)]


def looks_like_file_path(text: str) -> bool:
    """Syntactic check only; the filesystem is not consulted."""
    trimmed = text.strip()
    return trimmed.startswith(("/", "./", "../", _FILE_SCHEME))
