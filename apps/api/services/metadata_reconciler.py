"""Majority-vote selection of representative metadata across a group of tracks."""

from collections import Counter
from collections.abc import Callable, Hashable, Iterable
from typing import TypeVar

T = TypeVar("T")
K = TypeVar("K", bound=Hashable)


def most_common(items: Iterable[T], key: Callable[[T], K], default: K | str = "") -> K | str:
    """
    Return the most frequent value of ``key(item)`` across ``items``.

    Ties go to the value encountered first. An empty input returns ``default``.

    Example:
        >>> most_common([{"album": "A"}, {"album": "A"}, {"album": "B"}], lambda t: t["album"])
        'A'
    """
    counts: Counter[K] = Counter(key(item) for item in items)
    if not counts:
        return default
    # Counter keeps insertion order and most_common() sorts stably.
    value, _ = counts.most_common(1)[0]
    return value
