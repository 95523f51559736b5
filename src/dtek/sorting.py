"""Natural ordering for Ukrainian place names and building numbers.

"вул. 2-га" sorts before "вул. 10-та", "12/2" before "12А", case ignored.
"""

import re
from collections.abc import Iterable, Mapping
from typing import TypeVar

V = TypeVar("V")

_CHUNKS = re.compile(r"(\d+)")


def natural_key(text: str) -> tuple[tuple[int, int | str], ...]:
    parts = _CHUNKS.split(text.casefold())
    # (0, n) for numbers, (1, s) for text so the two never get compared directly
    return tuple((0, int(part)) if part.isdecimal() else (1, part) for part in parts if part)


def natural_sort(items: Iterable[str]) -> list[str]:
    return sorted(items, key=natural_key)


def natural_sort_keys(mapping: Mapping[str, V]) -> dict[str, V]:
    """Copy of ``mapping`` with keys in natural order."""
    return {key: mapping[key] for key in natural_sort(mapping)}
