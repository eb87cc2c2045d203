"""
Alert Monitor
=============
Evaluates stored trading alerts against incoming price updates.

Only ``price`` alerts can fire (``above``: price >= value, ``below``:
price <= value).  An alert fires once; ``reset(alert_id)`` re-arms it.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Set

from agentdesk.data_collectors.binance_collector import PriceUpdate, base_asset

logger = logging.getLogger(__name__)

AlertListener = Callable[[Dict[str, Any], PriceUpdate], None]


def alert_condition_met(alert: Dict[str, Any], price: float) -> bool:
    if alert.get("type", "price") != "price":
        return False
    target = float(alert.get("value") or 0)
    if alert.get("condition") == "above":
        return price >= target
    return price <= target


class AlertMonitor:

    def __init__(self):
        self._triggered: Set[str] = set()
        self._listeners: List[AlertListener] = []

    def add_listener(self, listener: AlertListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def check_alerts(self, alerts: List[Dict[str, Any]], update: PriceUpdate) -> List[Dict[str, Any]]:
        fired: List[Dict[str, Any]] = []
        for alert in alerts:
            if not alert.get("active", True):
                continue
            if base_asset(str(alert.get("symbol", ""))) != base_asset(update.symbol):
                continue
            alert_id = str(alert.get("id"))
            if alert_id in self._triggered:
                continue
            if alert_condition_met(alert, update.price):
                self._triggered.add(alert_id)
                fired.append(alert)
                logger.info(
                    "Alert %s triggered: %s %s %s (price %s)",
                    alert_id, alert.get("symbol"), alert.get("condition"),
                    alert.get("value"), update.price,
                )
                self._notify(alert, update)
        return fired

    def _notify(self, alert: Dict[str, Any], update: PriceUpdate) -> None:
        for listener in list(self._listeners):
            try:
                listener(alert, update)
            except Exception as exc:
                logger.error("Alert listener failed for %s: %s", alert.get("id"), exc)

    def reset(self, alert_id: str) -> None:
        self._triggered.discard(str(alert_id))

    def clear(self) -> None:
        self._triggered.clear()

    @property
    def triggered(self) -> Set[str]:
        return set(self._triggered)
