"""Flows that combine the review policy with persistence."""

from .review_session import EntryNotFoundError, ReviewPersistenceError, ReviewSession

__all__ = ["EntryNotFoundError", "ReviewPersistenceError", "ReviewSession"]
