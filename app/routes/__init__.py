from app.routes.blob import router as blob_router
from app.routes.blog import router as blog_router
from app.routes.health import router as health_router

__all__ = ["blob_router", "blog_router", "health_router"]
