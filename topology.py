# topology.py
"""
File-backed network controller: reads a YAML snapshot of hosts and port
counters on every call, so an external exporter can rewrite it between ticks.
"""
from __future__ import annotations

import os
from typing import Any, Dict, List

import yaml

from host_collector import HostLocation, PortCounter


class TopologyFileController:
    def __init__(self, path: str) -> None:
        self.path = path

    def _load(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            raise FileNotFoundError(f"topology snapshot not found: {self.path}")
        with open(self.path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"{self.path}: topology snapshot must be a mapping")
        return raw

    def list_active_hosts(self) -> List[HostLocation]:
        hosts = []
        for entry in self._load().get("hosts") or []:
            hosts.append(HostLocation(str(entry["mac"]).lower(), str(entry["device"]), entry["port"]))
        return hosts

    def get_port_byte_counters(self, device: Any) -> List[PortCounter]:
        ports = (self._load().get("devices") or {}).get(str(device)) or []
        return [PortCounter(p["port"], int(p.get("bytes_received", 0))) for p in ports]
