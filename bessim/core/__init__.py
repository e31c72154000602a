"""Cross-cutting helpers: error taxonomy and logging setup."""

from .errors import BessimError, InvalidInputError
from .logging import JSONFormatter, setup_logging

__all__ = ["BessimError", "InvalidInputError", "JSONFormatter", "setup_logging"]
