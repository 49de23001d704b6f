"""Orders: the line items tracked inside a project."""

from .crud import create_order, delete_order, get_order, list_orders, update_order

__all__ = ["create_order", "delete_order", "get_order", "list_orders", "update_order"]
