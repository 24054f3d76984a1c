# API Routers Module
# Exports all modular API routers

from routers.orders import router as orders_router
from routers.merchants import router as merchants_router

__all__ = [
    'orders_router',
    'merchants_router',
]
