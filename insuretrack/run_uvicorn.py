import uvicorn

from insuretrack.config import settings
from insuretrack.logging_config import configure_logging


def main() -> None:
    """
    Uvicorn launcher for the InsureTrack API.
    - PORT comes from settings (default 5000).
    - Logging is configured before Uvicorn starts and log_config=None
      keeps Uvicorn from replacing it.
    """
    configure_logging()

    uvicorn.run(
        "insuretrack.main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=False,
        log_config=None,
        use_colors=False,
    )


if __name__ == "__main__":
    main()
