# blacklist.py
"""
Ordered set of banned hosts. Membership only; nothing here touches traffic.
"""
from __future__ import annotations

from typing import Hashable, List

HostId = Hashable


class Blacklist:
    def __init__(self) -> None:
        self._hosts: List[HostId] = []

    def ban(self, host: HostId) -> bool:
        if host in self._hosts:
            return False
        self._hosts.append(host)
        return True

    def unban(self, host: HostId) -> bool:
        if host not in self._hosts:
            return False
        self._hosts.remove(host)
        return True

    def is_banned(self, host: HostId) -> bool:
        return host in self._hosts

    def list_banned(self) -> List[HostId]:
        return list(self._hosts)

    def __len__(self) -> int:
        return len(self._hosts)
