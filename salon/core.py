# salon/core.py
"""
Interval arithmetic behind availability.

Pure functions over minute offsets from midnight; no store access, no I/O.
Intervals are half-open ``(start, end)`` tuples.
"""

from datetime import time
from typing import Iterable, List, Tuple

Interval = Tuple[int, int]


def overlaps(start_a, end_a, start_b, end_b) -> bool:
    return start_a < end_b and start_b < end_a


def to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> time:
    return time(minutes // 60, minutes % 60)


def subtract(block: Interval, busy: Interval) -> List[Interval]:
    """Remove ``busy`` from ``block``, leaving zero, one or two pieces."""
    start, end = block
    if not overlaps(start, end, busy[0], busy[1]):
        return [block]

    pieces: List[Interval] = []
    if start < busy[0]:
        pieces.append((start, busy[0]))
    if busy[1] < end:
        pieces.append((busy[1], end))
    return pieces


def free_blocks(work: Iterable[Interval], booked: Iterable[Interval]) -> List[Interval]:
    """
    Subtract booked intervals from working intervals.

    Example:
    Working: 09:00 - 12:00
    Booked: [10:00-10:30]
    Result: [09:00-10:00, 10:30-12:00]

    The result is sorted and merged, so no two blocks touch or overlap.
    """
    booked = list(booked)
    remaining: List[Interval] = []

    for interval in work:
        pieces = [interval]
        for busy in booked:
            pieces = [piece for block in pieces for piece in subtract(block, busy)]
        remaining.extend(pieces)

    return _merge(remaining)


def candidate_starts(blocks: Iterable[Interval], duration: int) -> List[Interval]:
    """(earliest, latest) start per free block long enough for ``duration`` minutes."""
    if duration <= 0:
        raise ValueError("duration must be positive")

    return [
        (start, end - duration)
        for start, end in blocks
        if end - start >= duration
    ]


def _merge(intervals: List[Interval]) -> List[Interval]:
    merged: List[Interval] = []
    for start, end in sorted(intervals):
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged
