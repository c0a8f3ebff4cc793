import logging
from media_search.core.config import settings, DEFAULT_SECRET_KEY

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging() -> None:
    """Configure root logging once per process from LOG_LEVEL"""
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)

    if settings.SECRET_KEY == DEFAULT_SECRET_KEY:
        logging.getLogger(__name__).warning(
            "Using the default JWT secret - set SECRET_KEY in production")
