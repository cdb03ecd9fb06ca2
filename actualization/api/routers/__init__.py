"""
actualization/api/routers package marker.
"""

from actualization.api.routers.actualization import router as actualization_router

__all__ = ["actualization_router"]
