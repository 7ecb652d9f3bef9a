# traffic_ledger.py
"""
Per-host circular history of received-traffic samples (KB), one slot per tick.
"""
from __future__ import annotations

from typing import Dict, FrozenSet, Hashable, Iterator, List, Optional

HostId = Hashable

KB = 1024


class SampleWindow:
    """Fixed-size ring of samples. Slot for tick t is t % size; slots start empty."""

    def __init__(self, size: int) -> None:
        if size <= 0:
            raise ValueError(f"window size must be positive: {size}")
        self.size = size
        self._slots: List[Optional[int]] = [None] * size

    def __len__(self) -> int:
        return self.size

    def index_for(self, tick: int) -> int:
        return tick % self.size

    def oldest_index(self, tick: int) -> int:
        # slot written W ticks ago, i.e. the next one to be overwritten
        current = self.index_for(tick)
        if current == self.size - 1:
            return 0
        return current + 1

    def write(self, tick: int, value: int) -> None:
        self._slots[self.index_for(tick)] = value

    def get(self, index: int) -> Optional[int]:
        if not 0 <= index < self.size:
            return None
        return self._slots[index]

    def is_full(self) -> bool:
        return all(v is not None for v in self._slots)

    def values(self) -> List[Optional[int]]:
        return list(self._slots)


class TrafficLedger:
    def __init__(self, window_size: int) -> None:
        if window_size <= 0:
            raise ValueError(f"window size must be positive: {window_size}")
        self.window_size = window_size
        self._windows: Dict[HostId, SampleWindow] = {}

    def admit(self, host: HostId) -> SampleWindow:
        win = self._windows.get(host)
        if win is None:
            win = SampleWindow(self.window_size)
            self._windows[host] = win
        return win

    def record_sample(self, host: HostId, cumulative_bytes: int, tick: int) -> int:
        # cumulative counter scaled to KB, not a per-tick difference
        rate = cumulative_bytes // KB
        self.admit(host).write(tick, rate)
        return rate

    def get_sample(self, host: HostId, index: int) -> Optional[int]:
        win = self._windows.get(host)
        if win is None:
            return None
        return win.get(index)

    def window(self, host: HostId) -> Optional[SampleWindow]:
        return self._windows.get(host)

    def known_hosts(self) -> FrozenSet[HostId]:
        return frozenset(self._windows)

    def __contains__(self, host: object) -> bool:
        return host in self._windows

    def __len__(self) -> int:
        return len(self._windows)

    def __iter__(self) -> Iterator[HostId]:
        return iter(list(self._windows))
