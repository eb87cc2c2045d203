from .alert_monitor import AlertMonitor, alert_condition_met
from .price_monitor import PriceMonitor, get_price_sentiment

__all__ = ["AlertMonitor", "PriceMonitor", "alert_condition_met", "get_price_sentiment"]
