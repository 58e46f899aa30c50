"""
Run the API server: ``python -m email_platform`` or ``email-platform``.
"""
import uvicorn

from email_platform.core.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "email_platform.main:create_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
        # In-flight requests are not drained on shutdown.
        timeout_graceful_shutdown=0,
    )


if __name__ == "__main__":
    main()
