"""Simple logging configuration for the market experiment engine."""

import logging
import time
from contextlib import contextmanager
from typing import Generator

from fastapi import HTTPException

from .config import get_settings
from .errors import ConfigurationError, ExperimentStateError


def get_logger(name: str) -> logging.Logger:
    """Get a logger at the configured level (``Settings.log_level``)."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(get_settings().log_level)
    return logger


@contextmanager
def log_execution_time(
    logger: logging.Logger, operation: str
) -> Generator[None, None, None]:
    """Context manager to log execution time of operations."""
    start_time = time.perf_counter()
    logger.info(f"Starting {operation}")
    try:
        yield
    except Exception as e:
        logger.error(f"Error in {operation}: {e}")
        raise
    finally:
        duration = time.perf_counter() - start_time
        logger.info(f"Completed {operation} in {duration:.3f}s")


def handle_marketlab_error(logger: logging.Logger, error: Exception) -> HTTPException:
    """Map an engine error to an HTTP exception after logging it."""
    if isinstance(error, ConfigurationError):
        logger.warning(f"Invalid configuration: {error}")
        return HTTPException(status_code=422, detail=str(error))
    if isinstance(error, ExperimentStateError):
        logger.warning(f"Invalid experiment state: {error}")
        return HTTPException(status_code=409, detail=str(error))
    logger.error(f"Unexpected error: {error}")
    return HTTPException(status_code=500, detail="Internal server error")
