# detection_engine.py
"""
Sliding-window bandwidth rule and the blacklist it drives.

One tick records a sample for every host in the roster, checks each host's
growth between the newest and oldest slot of its window, bans hosts above
bandwidth_kb * num_cycles, then hands a snapshot to the observers.
"""
from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, Hashable, Iterable, List, Optional, Tuple

from blacklist import Blacklist
from traffic_ledger import TrafficLedger

HostId = Hashable


@dataclass(frozen=True)
class MonitorLimits:
    bandwidth_kb: int = 140
    num_cycles: int = 5
    # declared for operators; bans are lifted only by an explicit unban
    ban_time_s: int = 10

    def __post_init__(self) -> None:
        for name in ("bandwidth_kb", "num_cycles", "ban_time_s"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")

    @property
    def window_limit_kb(self) -> int:
        return self.bandwidth_kb * self.num_cycles


@dataclass
class TickSnapshot:
    tick: int
    rates: Dict[HostId, Optional[int]] = field(default_factory=dict)
    banned: List[HostId] = field(default_factory=list)
    newly_banned: List[HostId] = field(default_factory=list)


Observer = Callable[[TickSnapshot], None]


class DetectionEngine:
    def __init__(self, limits: Optional[MonitorLimits] = None) -> None:
        self.limits = limits or MonitorLimits()
        self.ledger = TrafficLedger(self.limits.num_cycles)
        self._blacklist = Blacklist()
        self._tick = 0
        self._lock = threading.Lock()
        self._observers: List[Observer] = []

    @property
    def current_tick(self) -> int:
        return self._tick

    def add_observer(self, observer: Observer) -> None:
        self._observers.append(observer)

    def tick(self, readings: Iterable[Tuple[HostId, Optional[int]]]) -> TickSnapshot:
        """
        Run one monitoring cycle.

        `readings` yields (host, cumulative_bytes_received) for the current
        roster. A None counter admits the host without writing a sample.
        """
        with self._lock:
            t = self._tick
            newly_banned: List[HostId] = []
            for host, cumulative_bytes in readings:
                if cumulative_bytes is None:
                    self.ledger.admit(host)
                else:
                    self.ledger.record_sample(host, cumulative_bytes, t)
                if self._exceeds_limit(host, t) and not self._blacklist.is_banned(host):
                    self._blacklist.ban(host)
                    newly_banned.append(host)
                    logging.warning(json.dumps({"event": "ban", "host": str(host), "tick": t, "source": "rule"}))
            snap = self._snapshot_at(t)
            snap.newly_banned = newly_banned
            self._tick += 1

        for observer in list(self._observers):
            try:
                observer(snap)
            except Exception:
                logging.exception("snapshot observer failed at tick %d", t)
        return snap

    def _exceeds_limit(self, host: HostId, t: int) -> bool:
        w = self.limits.num_cycles
        if t <= w:
            return False
        win = self.ledger.window(host)
        if win is None:
            return False
        newest = win.get(win.index_for(t))
        oldest = win.get(win.oldest_index(t))
        if newest is None or oldest is None:
            logging.debug("host %s not yet measurable at tick %d", host, t)
            return False
        return newest - oldest > self.limits.window_limit_kb

    def ban(self, host: HostId) -> bool:
        return self.ban_at(host)[0]

    def unban(self, host: HostId) -> bool:
        return self.unban_at(host)[0]

    def ban_at(self, host: HostId) -> Tuple[bool, int]:
        """Ban `host`; return (changed, tick the ban took effect at)."""
        with self._lock:
            if self._blacklist.is_banned(host):
                return False, self._tick
            return self._blacklist.ban(host), self._tick

    def unban_at(self, host: HostId) -> Tuple[bool, int]:
        with self._lock:
            return self._blacklist.unban(host), self._tick

    def is_banned(self, host: HostId) -> bool:
        return self._blacklist.is_banned(host)

    def banned(self) -> List[HostId]:
        return self._blacklist.list_banned()

    def get_traffic(self, host: HostId, index: int) -> Optional[int]:
        return self.ledger.get_sample(host, index)

    def snapshot(self) -> TickSnapshot:
        """Snapshot of the last completed tick."""
        with self._lock:
            return self._snapshot_at(max(self._tick - 1, 0))

    def _snapshot_at(self, t: int) -> TickSnapshot:
        index = t % self.limits.num_cycles
        rates = {host: self.ledger.get_sample(host, index) for host in self.ledger}
        return TickSnapshot(tick=t, rates=rates, banned=self._blacklist.list_banned())
