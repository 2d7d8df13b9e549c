"""Service package exports."""

from .kill_ledger import KillCountKey, KillLedger, MapGroups
from .quantity import Formula, QuantitySpec

__all__ = ["Formula", "KillCountKey", "KillLedger", "MapGroups", "QuantitySpec"]
