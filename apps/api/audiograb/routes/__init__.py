"""Route modules."""

from .convert import router as convert_router
from .download import router as download_router
from .progress import router as progress_router
from .system import router as system_router

__all__ = ["convert_router", "download_router", "progress_router", "system_router"]
