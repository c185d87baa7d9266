"""Run the API server: python -m coursetrack."""

import uvicorn

from coursetrack.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "coursetrack.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload and settings.is_development,
        workers=1 if settings.api_reload else settings.api_workers,
        log_config=None,
    )


if __name__ == "__main__":
    main()
