"""
app/api/routers package marker.
"""

from app.api.routers.scraper_admin import router as scraper_admin_router

__all__ = [
    "scraper_admin_router",
]
