"""
Error taxonomy.

- `InsufficientParticipants` is a precondition failure (nothing to generate yet). It is a
  `ValueError` so the API layer maps it to a 400 like any other invalid input.
- `SourcingUnavailable` never escapes the engine: it triggers the offline fallback.
- `StoreError` and subclasses come from the session store; the coordinator turns them
  into a single user-visible error string.
"""

from __future__ import annotations


class MeetyError(Exception):
    """Base class for all domain errors."""


class InsufficientParticipants(MeetyError, ValueError):
    def __init__(self, ready_count: int = 0, required: int = 1):
        self.ready_count = ready_count
        self.required = required
        super().__init__(
            f"Need at least {required} ready participant(s) to generate suggestions; got {ready_count}."
        )


class SourcingUnavailable(MeetyError):
    """The live place-search provider is missing or failed."""


class StoreError(MeetyError):
    """A session store read or write failed."""


class StoreWriteFailed(StoreError):
    pass


class SessionNotFound(StoreError, LookupError):
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session '{session_id}' not found or no longer active.")


class ConcurrentGenerationRejected(MeetyError):
    """A generation request arrived while another one is in flight."""
