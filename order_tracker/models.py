from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


USER_STATUSES = ("pending", "approved", "rejected")
USER_ROLES = ("user", "admin")

PAYMENT_STATUSES = ("unpaid", "partial", "paid")
DELIVERY_STATUSES = ("pending", "shipping", "delivered")


@dataclass(frozen=True)
class OrderFilters:
    payment_status: Optional[str] = None
    delivery_status: Optional[str] = None
    search: Optional[str] = None


@dataclass(frozen=True)
class OrderPage:
    orders: List[Dict[str, Any]] = field(default_factory=list)
    total: int = 0
