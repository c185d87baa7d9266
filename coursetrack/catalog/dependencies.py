"""FastAPI dependencies for catalog management.

Provides dependency injection for:
- Catalog service
- Error handlers
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import CatalogError, CatalogService


async def get_catalog_service(request: Request) -> CatalogService:
    """Get catalog service from app state."""
    app_state = request.app.state
    if not getattr(app_state, "catalog_service", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Catalog service not available",
        )
    return app_state.catalog_service


# Type alias for dependency injection
CatalogServiceDep = Annotated[CatalogService, Depends(get_catalog_service)]


def handle_catalog_error(error: CatalogError) -> HTTPException:
    """Convert catalog errors to HTTP exceptions.

    Args:
        error: Catalog error

    Returns:
        HTTPException with appropriate status code
    """
    status_map = {
        "course_not_found": status.HTTP_404_NOT_FOUND,
        "module_not_found": status.HTTP_404_NOT_FOUND,
        "lesson_not_found": status.HTTP_404_NOT_FOUND,
        "forbidden": status.HTTP_403_FORBIDDEN,
    }

    return HTTPException(
        status_code=status_map.get(error.code, status.HTTP_400_BAD_REQUEST),
        detail=error.message,
    )
