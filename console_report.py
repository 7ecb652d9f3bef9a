# console_report.py
"""
Per-tick console table of host rates and currently banned hosts.
"""
from __future__ import annotations

import logging
from typing import Optional

from detection_engine import TickSnapshot


class ConsoleReporter:
    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.log = logger or logging.getLogger("traffic_monitor.console")

    def __call__(self, snapshot: TickSnapshot) -> None:
        self.log.info("      Host        || Rate")
        for host, rate in snapshot.rates.items():
            shown = "-" if rate is None else rate
            self.log.info("%s || %s KB", host, shown)

        if snapshot.banned:
            self.log.info("")
            self.log.warning("---Currently Banned Host---")
            for host in snapshot.banned:
                self.log.warning("%s", host)
