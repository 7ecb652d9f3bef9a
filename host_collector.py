# host_collector.py
"""
Adapter between a network controller and the detection engine.

A controller is any object exposing:
  - list_active_hosts() -> iterable of HostLocation (or (host, device, port) tuples)
  - get_port_byte_counters(device) -> iterable of PortCounter (or (port, bytes_received) tuples)
"""
from __future__ import annotations

from typing import Any, Hashable, Iterable, List, NamedTuple, Optional, Protocol


class HostLocation(NamedTuple):
    host: Hashable
    device: Any
    port: Any


class PortCounter(NamedTuple):
    port: Any
    bytes_received: int


class HostReading(NamedTuple):
    host: Hashable
    cumulative_bytes: Optional[int]


class NetworkController(Protocol):
    def list_active_hosts(self) -> Iterable[HostLocation]: ...

    def get_port_byte_counters(self, device: Any) -> Iterable[PortCounter]: ...


class ControllerError(RuntimeError):
    """The controller could not supply hosts or counters for this cycle."""


def _same_port(a: Any, b: Any) -> bool:
    if a == b:
        return True
    try:
        return int(a) == int(b)
    except (TypeError, ValueError):
        return False


def collect_readings(controller: NetworkController) -> List[HostReading]:
    """
    Resolve each active host to the cumulative received-bytes counter of the
    switch port it is attached to. Hosts whose port has no counter get None.
    """
    try:
        hosts = [HostLocation(*loc) for loc in controller.list_active_hosts()]
    except Exception as e:
        raise ControllerError(f"listing hosts failed: {e}") from e

    readings: List[HostReading] = []
    for loc in hosts:
        try:
            counters = [PortCounter(*c) for c in controller.get_port_byte_counters(loc.device)]
        except Exception as e:
            raise ControllerError(f"port counters for {loc.device} failed: {e}") from e
        value = None
        for counter in counters:
            if _same_port(counter.port, loc.port):
                value = int(counter.bytes_received)
                break
        readings.append(HostReading(loc.host, value))
    return readings
