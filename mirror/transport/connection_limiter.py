"""Caps on how many mirrors run at once, overall and per client address."""

import threading
from collections import Counter
from typing import Optional

GLOBAL_LIMIT = "global"
PER_IP_LIMIT = "ip"


class ConnectionLimiter:
    """Counts live mirror connections and refuses those over a cap.

    A cap of zero disables that check. The per-address cap is checked first,
    so a client over both caps is told about its own.
    """

    def __init__(self, max_connections: int, max_connections_per_ip: int) -> None:
        self.max_connections = max(0, max_connections)
        self.max_connections_per_ip = max(0, max_connections_per_ip)
        self._lock = threading.Lock()
        self._total = 0
        self._by_address: Counter = Counter()

    def _refusal(self, client_ip: str) -> Optional[str]:
        per_ip_cap = self.max_connections_per_ip
        if per_ip_cap and self._by_address[client_ip] >= per_ip_cap:
            return PER_IP_LIMIT
        if self.max_connections and self._total >= self.max_connections:
            return GLOBAL_LIMIT
        return None

    def acquire(self, client_ip: str) -> tuple[bool, Optional[str]]:
        """Take a slot for ``client_ip``, or name the cap that refused it."""
        with self._lock:
            refusal = self._refusal(client_ip)
            if refusal is None:
                self._by_address[client_ip] += 1
                self._total += 1
        return refusal is None, refusal

    def release(self, client_ip: str) -> None:
        """Give back a slot taken by ``acquire``; unknown addresses are ignored."""
        with self._lock:
            held = self._by_address[client_ip]
            if held <= 0:
                return
            if held == 1:
                del self._by_address[client_ip]
            else:
                self._by_address[client_ip] = held - 1
            self._total -= 1

    def active_count(self) -> int:
        with self._lock:
            return self._total
