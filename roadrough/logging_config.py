import logging

LOGGER_NAME = "RoadRough"


def configure_logging(level=logging.INFO):
    """Configure logging for the entire application"""
    # Set werkzeug log level to ERROR to prevent request logs from the sensor receiver
    logging.getLogger('werkzeug').setLevel(logging.ERROR)

    # Set a high log level for other potentially noisy libraries
    logging.getLogger('urllib3').setLevel(logging.WARNING)

    # Configure the main application logger
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    return logger
