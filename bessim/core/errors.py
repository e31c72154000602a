"""Exception taxonomy for the simulation and optimization engine."""

from __future__ import annotations


class BessimError(Exception):
    """Base class for all errors raised by ``bessim``."""


class InvalidInputError(BessimError, ValueError):
    """Malformed caller input: bad profile length, negative ratings, etc.

    Subclasses :class:`ValueError` so callers that already guard numeric
    validation with ``except ValueError`` keep working.
    """
