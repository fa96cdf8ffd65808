# display_update_service/app/utils/logging_config.py
import logging
import os
import sys


def setup_logging():
    """
    Configures basic logging for the application.
    Logs to stdout, which Cloud Run captures as-is.
    """
    log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = getattr(logging, log_level_str, logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info(f"DisplayUpdater Logging configured with level: {log_level_str}")
