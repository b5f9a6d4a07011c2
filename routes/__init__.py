"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.rfqs import router as rfqs_router
from routes.quotes import router as quotes_router
from routes.allocations import router as allocations_router
from routes.rates import router as rates_router

__all__ = [
    "rfqs_router",
    "quotes_router",
    "allocations_router",
    "rates_router",
]
