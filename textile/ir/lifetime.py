from __future__ import annotations

from dataclasses import dataclass
from typing import List, Union


def span_mask(first: int, last: int) -> int:
    """Bitset with bits [first, last] set (empty when last < first)."""
    if last < first:
        return 0
    return ((1 << (last - first + 1)) - 1) << first


def mask_passes(mask: int) -> List[int]:
    out = []
    i = 0
    while mask:
        if mask & 1:
            out.append(i)
        mask >>= 1
        i += 1
    return out


@dataclass(frozen=True)
class TransientRange:
    """Live on the contiguous pass interval [first, last]."""

    first: int
    last: int

    def __post_init__(self) -> None:
        if self.first < 0 or self.last < self.first:
            raise ValueError(f"invalid transient range: [{self.first}, {self.last}]")

    @property
    def sort_order(self) -> int:
        return self.first

    def live_mask(self) -> int:
        return span_mask(self.first, self.last)

    def __contains__(self, pass_index: int) -> bool:
        return self.first <= pass_index <= self.last


@dataclass(frozen=True)
class HistoryRange:
    """
    Read at the start of the frame, written for the next one.

    Live on [0, last_read] and [first_write, total - 1]. When the two spans
    touch or overlap the texture is live on every pass.
    """

    last_read: int
    first_write: int
    total: int

    @property
    def sort_order(self) -> int:
        return -1

    @property
    def fully_live(self) -> bool:
        return self.first_write - self.last_read <= 1

    def live_mask(self) -> int:
        if self.fully_live:
            return span_mask(0, self.total - 1)
        return span_mask(0, self.last_read) | span_mask(self.first_write, self.total - 1)

    def __contains__(self, pass_index: int) -> bool:
        if self.fully_live:
            return True
        return not (self.last_read < pass_index < self.first_write)


@dataclass(frozen=True)
class PersistentRange:
    """Always resident; sized in absolute pixels."""

    total: int
    width: int
    height: int

    @property
    def sort_order(self) -> int:
        return -1

    def live_mask(self) -> int:
        return span_mask(0, self.total - 1)

    def __contains__(self, pass_index: int) -> bool:
        return True


LifetimeRange = Union[TransientRange, HistoryRange, PersistentRange]


def describe(lt: LifetimeRange) -> str:
    if isinstance(lt, TransientRange):
        return f"transient [{lt.first}, {lt.last}]"
    if isinstance(lt, HistoryRange):
        if lt.fully_live:
            return f"history (fully live, last_read={lt.last_read}, first_write={lt.first_write})"
        return f"history [0, {lt.last_read}] + [{lt.first_write}, {lt.total - 1}]"
    return f"persistent {lt.width}x{lt.height}"
