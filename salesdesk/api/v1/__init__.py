"""
API v1 package initialization.
"""

from salesdesk.api.v1.orders import router as orders_router
from salesdesk.api.v1.pricing import router as pricing_router

__all__ = ["orders_router", "pricing_router"]
