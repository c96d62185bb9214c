# log_util.py
# Coloured stderr logging shared by the scanner and the CLI

import logging
import colorlog


# ---------------------------------------------------------------------------
# LOGGER FACTORY
# ---------------------------------------------------------------------------
def getLogger(name: str, level: int = logging.INFO) -> logging.Logger:
    logger = colorlog.getLogger(name)
    if not logger.handlers:
        handler = colorlog.StreamHandler()
        handler.setFormatter(
            colorlog.ColoredFormatter(
                "%(asctime)s.%(msecs)03d %(log_color)s%(levelname)s%(reset)s %(bold)s%(name)s%(reset)s: %(message)s",
                log_colors={
                    "DEBUG": "cyan",
                    "INFO": "green",
                    "WARNING": "yellow",
                    "ERROR": "red",
                    "CRITICAL": "red,bg_white",
                },
                datefmt="%H:%M:%S",
            )
        )
        logger.addHandler(handler)

    logger.setLevel(level)
    logger.propagate = False

    return logger
