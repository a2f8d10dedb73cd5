"""
Margined Deploy - Gas Logger

Process-wide record of gas used per contract call, for diagnostics only.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, List, Optional

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class GasLogEntry:
    msg: str
    gas_used: int


class GasLogger:
    """
    Append-only gas consumption log for one run.

    Usage:
        gas = GasLogger()
        gas.record({"open_position": {...}}, 182_344)
        gas.report()
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._entries: List[GasLogEntry] = []

    def record(self, msg: Any, gas_used: int) -> None:
        if not self.enabled:
            return
        text = msg if isinstance(msg, str) else json.dumps(msg, separators=(",", ":"))
        self._entries.append(GasLogEntry(text, int(gas_used)))

    def __len__(self) -> int:
        return len(self._entries)

    def max_entry(self) -> Optional[GasLogEntry]:
        """Highest-gas single call, or None when nothing was recorded."""
        if not self._entries:
            return None
        return max(self._entries, key=lambda e: e.gas_used)

    def average(self) -> float:
        if not self._entries:
            return 0.0
        return sum(e.gas_used for e in self._entries) / len(self._entries)

    def sorted_entries(self) -> List[GasLogEntry]:
        """All entries, descending by gas used."""
        return sorted(self._entries, key=lambda e: e.gas_used, reverse=True)

    def drain(self) -> List[GasLogEntry]:
        entries, self._entries = self._entries, []
        return entries

    def report(self) -> None:
        """Log max, average and the sorted listing."""
        if not self._entries:
            return
        top = self.max_entry()
        log.info("--- MAX GAS CONSUMPTION ---")
        log.info(f"gas used: {top.gas_used}, msg: {top.msg}")
        log.info("--- AVERAGE GAS CONSUMPTION ---")
        log.info(f"avg gas used: {self.average():.1f}")
        log.info("--- SORTED GAS CONSUMPTION (DESCENDING) ---")
        for entry in self.sorted_entries():
            log.info(f"gas used: {entry.gas_used}, msg: {entry.msg}")
