"""Utility modules for the runner core."""

from .cancel import CancellationToken, CancelledError, DeadlineExceededError
from .logging import get_logger, setup_logging

__all__ = [
    "setup_logging",
    "get_logger",
    "CancellationToken",
    "CancelledError",
    "DeadlineExceededError",
]
