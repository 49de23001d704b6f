"""Order Tracker - Backend.

A small JSON API behind a single-page client:
- Users register and wait for an administrator to approve them.
- Each user owns projects; each project holds orders.
- Orders carry payment and delivery status and are listed with
  filters + offset pagination.

See README for setup and usage.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
