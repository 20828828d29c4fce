"""Redis-style SCAN cursors for the in-process stores."""

import bisect
import fnmatch
import itertools
import re
from typing import Iterable

_GLOB_SPECIAL = re.compile(r"([*?\[])")


def escape_glob(text: str) -> str:
    """Escape ``text`` so fnmatch treats it literally."""
    return _GLOB_SPECIAL.sub(r"[\1]", text)


class ScanCursors:
    """Integer cursors that resume after the last key returned.

    Each page is cut from the keys sorted at call time, starting just
    past the previous page's last key. Keys deleted or added between
    pages therefore never shift a key that existed for the whole scan
    out of the result.
    """

    def __init__(self) -> None:
        self._resume_after: dict[int, str] = {}
        self._ids = itertools.count(1)

    def page(self, keys: Iterable[str], cursor: int, match: str, count: int) -> tuple[int, list[str]]:
        if cursor == 0:
            start_after = None
        else:
            try:
                start_after = self._resume_after.pop(cursor)
            except KeyError:
                raise ValueError(f"Invalid scan cursor {cursor}")

        ordered = sorted(key for key in keys if fnmatch.fnmatchcase(key, match))
        start = 0 if start_after is None else bisect.bisect_right(ordered, start_after)
        end = start + max(count, 1)
        batch = ordered[start:end]

        if end >= len(ordered):
            return 0, batch
        next_cursor = next(self._ids)
        self._resume_after[next_cursor] = batch[-1]
        return next_cursor, batch
