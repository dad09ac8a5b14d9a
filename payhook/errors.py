"""Collaborator failures.

Verification outcomes are returned as values (see webhooks.verification).
Only the downstream collaborators raise, and the dispatcher recovers
every CollaboratorFailure locally.
"""

from __future__ import annotations


class CollaboratorFailure(Exception):
    """A downstream collaborator (customer lookup, email) failed."""

    collaborator: str = "collaborator"

    def __init__(self, message: str, *, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


class CustomerLookupError(CollaboratorFailure):
    """Customer could not be fetched from the payment provider."""

    collaborator = "customer_lookup"

    def __init__(self, customer_id: str, message: str, *, cause: Exception | None = None):
        super().__init__(f"customer {customer_id}: {message}", cause=cause)
        self.customer_id = customer_id


class EmailDispatchError(CollaboratorFailure):
    """An email channel reported a failed send."""

    collaborator = "email"

    def __init__(self, channel_id: str, message: str, *, cause: Exception | None = None):
        super().__init__(f"{channel_id}: {message}", cause=cause)
        self.channel_id = channel_id
