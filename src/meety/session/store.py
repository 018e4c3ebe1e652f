"""Session store interface and the in-memory implementation with change notifications."""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Literal, Protocol

from meety.domain.errors import SessionNotFound, StoreWriteFailed
from meety.domain.models import Participant, Session, Suggestion

logger = logging.getLogger(__name__)

Table = Literal["sessions", "participants", "suggestions"]
EventType = Literal["INSERT", "UPDATE", "DELETE"]


@dataclass(frozen=True)
class StoreEvent:
    """Change notification; handlers should re-fetch rather than trust the rows."""

    table: Table
    event_type: EventType
    session_id: str
    new_row: dict[str, Any] | None = None
    old_row: dict[str, Any] | None = None


EventHandler = Callable[[StoreEvent], Awaitable[None]]


class Subscription(Protocol):
    def unsubscribe(self) -> None:
        """Stop delivering events to the handler."""


class SessionStore(Protocol):
    async def create_session(self) -> Session:
        """Create an active, empty session row."""

    async def get_session(self, session_id: str) -> Session:
        """Return the active session row (participants/suggestions not populated)."""

    async def update_session(self, session_id: str, **fields: Any) -> Session:
        """Update session row fields and return the new row."""

    async def list_participants(self, session_id: str) -> list[Participant]:
        """Participants in join order."""

    async def insert_participant(self, session_id: str, participant: Participant) -> Participant:
        """Add a participant (ids are unique per session)."""

    async def update_participant(self, session_id: str, participant_id: str, **fields: Any) -> Participant:
        """Update participant fields and return the new row."""

    async def delete_participant(self, session_id: str, participant_id: str) -> None:
        """Remove a participant."""

    async def list_suggestions(self, session_id: str) -> list[Suggestion]:
        """Suggestions in rank order."""

    async def insert_suggestions(self, session_id: str, suggestions: list[Suggestion]) -> None:
        """Append suggestions after the existing ones."""

    async def delete_suggestions(self, session_id: str) -> None:
        """Remove every suggestion of the session."""

    def subscribe(self, session_id: str, handler: EventHandler) -> Subscription:
        """Deliver change events for `session_id` to `handler`."""


@dataclass
class _InMemorySubscription:
    store: "InMemorySessionStore"
    session_id: str
    handler: EventHandler
    active: bool = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        subs = self.store._subscribers.get(self.session_id, [])
        if self in subs:
            subs.remove(self)


@dataclass
class InMemorySessionStore:
    """Process-local store. Events are delivered as tasks on the running event loop.

    `fail_operations` names write operations that should raise `StoreWriteFailed`
    (e.g. {"insert_suggestions"}); used to exercise error paths.
    """

    fail_operations: set[str] = field(default_factory=set)

    def __post_init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._participants: dict[str, list[Participant]] = {}
        self._suggestions: dict[str, list[Suggestion]] = {}
        self._subscribers: dict[str, list[_InMemorySubscription]] = {}
        self._pending: set[asyncio.Task] = set()

    def _check_write(self, operation: str) -> None:
        if operation in self.fail_operations:
            raise StoreWriteFailed(f"{operation} failed")

    def _require_session(self, session_id: str) -> Session:
        row = self._sessions.get(session_id)
        if row is None or not row.is_active:
            raise SessionNotFound(session_id)
        return row

    def _notify(self, event: StoreEvent) -> None:
        subs = [s for s in self._subscribers.get(event.session_id, []) if s.active]
        if not subs:
            return
        loop = asyncio.get_running_loop()
        for sub in subs:
            task = loop.create_task(sub.handler(event))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def flush(self) -> None:
        """Wait until every delivered event (and any events they caused) has been handled."""
        while True:
            pending = [t for t in self._pending if not t.done()]
            if not pending:
                return
            results = await asyncio.gather(*pending, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    logger.error("Store event handler failed: %s", result)

    async def create_session(self) -> Session:
        self._check_write("create_session")
        row = Session(id=str(uuid.uuid4()))
        self._sessions[row.id] = row
        self._participants[row.id] = []
        self._suggestions[row.id] = []
        self._notify(StoreEvent("sessions", "INSERT", row.id, new_row=row.model_dump(mode="json")))
        return row

    async def get_session(self, session_id: str) -> Session:
        return self._require_session(session_id).model_copy()

    async def update_session(self, session_id: str, **fields: Any) -> Session:
        old = self._require_session(session_id)
        self._check_write("update_session")
        new = old.model_copy(update=fields)
        self._sessions[session_id] = new
        self._notify(
            StoreEvent(
                "sessions", "UPDATE", session_id,
                new_row=new.model_dump(mode="json"), old_row=old.model_dump(mode="json"),
            )
        )
        return new.model_copy()

    async def list_participants(self, session_id: str) -> list[Participant]:
        self._require_session(session_id)
        return list(self._participants[session_id])

    async def insert_participant(self, session_id: str, participant: Participant) -> Participant:
        self._require_session(session_id)
        self._check_write("insert_participant")
        rows = self._participants[session_id]
        if any(p.id == participant.id for p in rows):
            raise StoreWriteFailed(f"Participant '{participant.id}' already exists")
        rows.append(participant)
        self._notify(StoreEvent("participants", "INSERT", session_id, new_row=participant.model_dump(mode="json")))
        return participant

    async def update_participant(self, session_id: str, participant_id: str, **fields: Any) -> Participant:
        self._require_session(session_id)
        self._check_write("update_participant")
        rows = self._participants[session_id]
        for index, old in enumerate(rows):
            if old.id == participant_id:
                new = old.model_copy(update=fields)
                rows[index] = new
                self._notify(
                    StoreEvent(
                        "participants", "UPDATE", session_id,
                        new_row=new.model_dump(mode="json"), old_row=old.model_dump(mode="json"),
                    )
                )
                return new
        raise StoreWriteFailed(f"Participant '{participant_id}' not found")

    async def delete_participant(self, session_id: str, participant_id: str) -> None:
        self._require_session(session_id)
        self._check_write("delete_participant")
        rows = self._participants[session_id]
        for old in list(rows):
            if old.id == participant_id:
                rows.remove(old)
                self._notify(StoreEvent("participants", "DELETE", session_id, old_row=old.model_dump(mode="json")))

    async def list_suggestions(self, session_id: str) -> list[Suggestion]:
        self._require_session(session_id)
        return list(self._suggestions[session_id])

    async def insert_suggestions(self, session_id: str, suggestions: list[Suggestion]) -> None:
        self._require_session(session_id)
        self._check_write("insert_suggestions")
        self._suggestions[session_id].extend(suggestions)
        for s in suggestions:
            self._notify(StoreEvent("suggestions", "INSERT", session_id, new_row=s.model_dump(mode="json")))

    async def delete_suggestions(self, session_id: str) -> None:
        self._require_session(session_id)
        self._check_write("delete_suggestions")
        old_rows = self._suggestions[session_id]
        self._suggestions[session_id] = []
        for s in old_rows:
            self._notify(StoreEvent("suggestions", "DELETE", session_id, old_row=s.model_dump(mode="json")))

    def subscribe(self, session_id: str, handler: EventHandler) -> Subscription:
        sub = _InMemorySubscription(self, session_id, handler)
        self._subscribers.setdefault(session_id, []).append(sub)
        return sub
