"""Domain exceptions."""

from __future__ import annotations


class SageError(Exception):
    """Base class for errors raised by sage."""


class InvalidTransitionError(SageError, ValueError):
    """An ingestion job was asked to move to a state its current state forbids."""


class DocumentNotFoundError(SageError, LookupError):
    """No document record exists for the given id."""


class QueryRunNotFoundError(SageError, LookupError):
    """No query run exists for the given id."""
