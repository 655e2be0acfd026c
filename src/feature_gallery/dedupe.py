"""Order-preserving deduplication helpers."""

from typing import Callable, Hashable, Iterable, List, Optional, TypeVar

T = TypeVar('T')


def dedupe(items: Optional[Iterable[str]]) -> List[str]:
    """Drop empty and repeated values, keeping the first occurrence of each.

    Values are compared by plain string equality; nothing is trimmed or
    case-folded.
    """
    seen = set()
    unique = []
    for item in items or []:
        if item and item not in seen:
            seen.add(item)
            unique.append(item)
    return unique


def dedupe_by(items: Iterable[T], key: Callable[[T], Hashable]) -> List[T]:
    """Keep the first item for every distinct ``key(item)``."""
    seen = set()
    unique = []
    for item in items:
        k = key(item)
        if k not in seen:
            seen.add(k)
            unique.append(item)
    return unique


def split_list(value: Optional[str]) -> List[str]:
    """Split a comma-separated attribute into trimmed non-empty parts."""
    if not value:
        return []
    return [part.strip() for part in value.split(',') if part.strip()]
