"""
Lucid Structured Logger
"""

import logging
import sys


def setup_logging(level: str = "INFO"):
    """Configure structured logging for Lucid"""
    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)-25s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    resolved = getattr(logging, level.upper(), logging.INFO)
    for name in ("lucid", "fatigue_model"):
        logger = logging.getLogger(name)
        logger.setLevel(resolved)
        if not logger.handlers:
            logger.addHandler(handler)

    # Suppress noisy loggers
    logging.getLogger("mediapipe").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    return logging.getLogger("lucid")
