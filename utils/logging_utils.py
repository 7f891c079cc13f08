import logging

DEFAULT_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level="INFO", handlers=None):
    """Configure the root logger once; repeated calls only adjust the level."""
    logger = logging.getLogger()
    logger.setLevel(level)

    if handlers is not None:
        for handler in handlers:
            logger.addHandler(handler)
    elif not any(getattr(h, "_lms_default", False) for h in logger.handlers):
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(logging.Formatter(DEFAULT_LOG_FORMAT))
        stream_handler._lms_default = True
        logger.addHandler(stream_handler)

    return logger
