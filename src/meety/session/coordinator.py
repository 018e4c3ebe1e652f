"""
Session coordinator.

Owns one client's view of a session:
- participant mutations (join, location, activity, removal),
- staleness: suggestions belong to the configuration they were generated from; any
  change to the ready participants (or to the participant count) clears them at once,
- the generation lifecycle: one run in flight at a time, old suggestions deleted before
  new ones are inserted, suggestions written before their fingerprint,
- store notifications: every event triggers a re-fetch, never a patch from the payload.

Store failures are caught here and turned into `self.error`, a single user-visible string;
the session stays usable.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

import httpx

from meety.config.settings import Settings
from meety.domain.errors import InsufficientParticipants, SessionNotFound, StoreError
from meety.domain.models import ACTIVITY_CATEGORIES, Coordinate, Participant, Session, Suggestion
from meety.recommender.engine import SuggestionEngine
from meety.recommender.feed import SuggestionFeed
from meety.session.fingerprint import configuration_fingerprint
from meety.session.store import SessionStore, StoreEvent, Subscription

logger = logging.getLogger(__name__)


class GenerationOutcome(str, Enum):
    GENERATED = "generated"
    NOT_READY = "not_ready"
    REJECTED_IN_FLIGHT = "rejected_in_flight"
    FAILED = "failed"
    DISCARDED = "discarded"
    NO_MORE = "no_more"


@dataclass
class SessionContext:
    """Per-client identity: which session, which participant is "me", and the live subscription."""

    session_id: str | None = None
    participant_id: str | None = None
    subscription: Subscription | None = None


class SessionCoordinator:
    def __init__(
        self,
        store: SessionStore,
        engine: SuggestionEngine | None = None,
        *,
        settings: Settings | None = None,
        context: SessionContext | None = None,
    ):
        self._engine = engine or SuggestionEngine(settings)
        self._settings = settings or self._engine.settings
        self._store = store
        self.context = context or SessionContext()
        self.session: Session | None = None
        self.error: str | None = None
        self._generating = False
        self._feed: SuggestionFeed | None = None

    async def __aenter__(self) -> "SessionCoordinator":
        if self.context.session_id and self.context.subscription is None:
            self._subscribe()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.leave()

    # ---- derived state ----

    @property
    def is_generating(self) -> bool:
        return self._generating

    @property
    def participants(self) -> list[Participant]:
        return list(self.session.participants) if self.session else []

    @property
    def can_generate(self) -> bool:
        return any(p.is_ready for p in self.participants)

    @property
    def has_more(self) -> bool:
        return bool(self._feed and self.session and self.session.suggestions and self._feed.has_more)

    def current_fingerprint(self) -> str:
        return configuration_fingerprint(self.participants)

    def are_suggestions_stale(self) -> bool:
        """True when shown suggestions were generated for a different configuration.

        Rows without a fingerprint belong to a run whose fingerprint write has not landed
        yet; they are not stale.
        """
        session = self.session
        if session is None or not session.suggestions:
            return False
        if session.suggestions_fingerprint is None:
            return False
        if session.suggestions_fingerprint != self.current_fingerprint():
            return True
        return session.suggestions_participant_count != len(session.participants)

    def share_link(self, base_url: str | None = None) -> str:
        if not self.context.session_id:
            return ""
        base = base_url or self._settings.app.public_base_url
        return str(httpx.URL(base).copy_merge_params({"session": self.context.session_id}))

    def _fail(self, message: str, exc: Exception) -> None:
        logger.error("%s: %s", message, exc)
        self.error = message

    def _set_suggestions(self, suggestions: list[Suggestion], fingerprint: str | None, count: int | None) -> None:
        if self.session is None:
            return
        self.session = self.session.model_copy(
            update={
                "suggestions": list(suggestions),
                "suggestions_fingerprint": fingerprint,
                "suggestions_participant_count": count,
            }
        )

    def _replace_participants(self, participants: list[Participant]) -> None:
        if self.session is not None:
            self.session = self.session.model_copy(update={"participants": participants})

    # ---- store plumbing ----

    async def refresh(self) -> Session:
        """Re-fetch the session, its participants and its suggestions.

        While a run is in flight only the session row and participants are replaced: the
        run owns the suggestion fields until its own writes have landed.
        """
        session_id = self.context.session_id
        if not session_id:
            raise SessionNotFound("<none>")
        row = await self._store.get_session(session_id)
        participants = await self._store.list_participants(session_id)
        suggestions = await self._store.list_suggestions(session_id)
        if self._generating and self.session is not None:
            current = self.session
            self.session = row.model_copy(
                update={
                    "participants": participants,
                    "suggestions": current.suggestions,
                    "suggestions_fingerprint": current.suggestions_fingerprint,
                    "suggestions_participant_count": current.suggestions_participant_count,
                }
            )
        else:
            self.session = row.model_copy(update={"participants": participants, "suggestions": suggestions})
        return self.session

    def _subscribe(self) -> None:
        if self.context.subscription is not None:
            self.context.subscription.unsubscribe()
        self.context.subscription = self._store.subscribe(self.context.session_id, self._on_store_event)

    async def _on_store_event(self, event: StoreEvent) -> None:
        logger.debug("Store event %s %s for session %s", event.table, event.event_type, event.session_id)
        try:
            await self.refresh()
            if not self._generating:
                await self.clear_stale_suggestions()
        except SessionNotFound:
            self.leave()
        except StoreError as e:
            self._fail("Failed to load session data", e)

    def _new_participant(self, existing: int, display_name: str | None) -> Participant:
        colors = self._settings.session.colors or ["#3b82f6"]
        return Participant(
            id=str(uuid.uuid4()),
            display_name=display_name or self._settings.session.display_name_pattern.format(n=existing + 1),
            color_tag=colors[existing % len(colors)],
        )

    # ---- session lifecycle ----

    async def create_session(self, display_name: str | None = None) -> Session | None:
        """Create a session, join it as the first participant and subscribe to it."""
        try:
            row = await self._store.create_session()
            me = await self._store.insert_participant(row.id, self._new_participant(0, display_name))
            self.context.session_id = row.id
            self.context.participant_id = me.id
            await self.refresh()
        except StoreError as e:
            self._fail("Failed to create session", e)
            return None
        self._subscribe()
        logger.info("Created session %s", row.id)
        return self.session

    async def join_session(self, session_id: str, display_name: str | None = None) -> Session | None:
        """Join an existing session as a new participant."""
        try:
            await self._store.get_session(session_id)
            existing = await self._store.list_participants(session_id)
            me = await self._store.insert_participant(session_id, self._new_participant(len(existing), display_name))
            self.context.session_id = session_id
            self.context.participant_id = me.id
            await self.refresh()
        except SessionNotFound as e:
            self._fail("Session not found", e)
            return None
        except StoreError as e:
            self._fail("Failed to join session", e)
            return None
        self._subscribe()
        await self.clear_stale_suggestions()
        logger.info("Participant %s joined session %s", me.id, session_id)
        return self.session

    async def attach(self, session_id: str) -> Session | None:
        """Observe a session without joining it."""
        self.context.session_id = session_id
        try:
            await self.refresh()
        except SessionNotFound as e:
            self.context.session_id = None
            self._fail("Session not found", e)
            return None
        except StoreError as e:
            self._fail("Failed to load session data", e)
            return None
        self._subscribe()
        return self.session

    def leave(self) -> None:
        """Stop receiving store notifications."""
        if self.context.subscription is not None:
            self.context.subscription.unsubscribe()
            self.context.subscription = None

    async def close_session(self) -> bool:
        """End the session for everyone: drop suggestions and participants, mark inactive."""
        session_id = self.context.session_id
        if not session_id:
            return False
        self.leave()
        try:
            await self._store.delete_suggestions(session_id)
            for p in await self._store.list_participants(session_id):
                await self._store.delete_participant(session_id, p.id)
            await self._store.update_session(session_id, is_active=False)
        except StoreError as e:
            self._fail("Failed to close session", e)
            return False
        self.session = None
        self._feed = None
        logger.info("Closed session %s", session_id)
        return True

    # ---- participant mutations ----

    async def _update_participant(self, participant_id: str | None, message: str, **fields: Any) -> bool:
        pid = participant_id or self.context.participant_id
        if not self.context.session_id or not pid:
            self.error = message
            return False
        try:
            updated = await self._store.update_participant(self.context.session_id, pid, **fields)
        except StoreError as e:
            self._fail(message, e)
            return False
        self._replace_participants([updated if p.id == pid else p for p in self.participants])
        await self.clear_stale_suggestions()
        return True

    async def update_location(self, location: Coordinate, *, participant_id: str | None = None) -> bool:
        return await self._update_participant(participant_id, "Failed to update location", location=location)

    async def update_activity(self, activity: str, *, participant_id: str | None = None) -> bool:
        if activity not in ACTIVITY_CATEGORIES:
            raise ValueError(f"Unknown activity '{activity}'.")
        return await self._update_participant(participant_id, "Failed to update activity", activity=activity)

    async def remove_participant(self, participant_id: str) -> bool:
        if not self.context.session_id:
            return False
        try:
            await self._store.delete_participant(self.context.session_id, participant_id)
        except StoreError as e:
            self._fail("Failed to remove participant", e)
            return False
        self._replace_participants([p for p in self.participants if p.id != participant_id])
        if participant_id == self.context.participant_id:
            self.context.participant_id = None
        await self.clear_stale_suggestions()
        return True

    # ---- suggestions ----

    async def clear_stale_suggestions(self) -> bool:
        """Discard suggestions generated for another configuration. Returns True if cleared."""
        if not self.are_suggestions_stale():
            return False
        logger.info("Suggestions for session %s are stale; clearing", self.context.session_id)
        self._set_suggestions([], None, None)
        self._feed = None
        try:
            await self._store.delete_suggestions(self.context.session_id)
            await self._store.update_session(
                self.context.session_id, suggestions_fingerprint=None, suggestions_participant_count=None
            )
        except StoreError as e:
            self._fail("Failed to clear outdated suggestions", e)
        return True

    async def generate(
        self, max_results: int | None = None, *, overrides: Mapping[str, Any] | None = None
    ) -> GenerationOutcome:
        """(Re)generate suggestions for the current configuration."""
        if self._generating:
            logger.debug("Generation already in flight for session %s; ignoring", self.context.session_id)
            return GenerationOutcome.REJECTED_IN_FLIGHT
        if self.session is None or not self.context.session_id:
            self.error = "No active session"
            return GenerationOutcome.FAILED
        if not self.can_generate:
            return GenerationOutcome.NOT_READY

        engine = self._engine.with_overrides(overrides)
        self._generating = True
        self.error = None
        session_id = self.context.session_id
        participants = self.participants
        fingerprint = configuration_fingerprint(participants)
        count = len(participants)
        try:
            try:
                await self._store.delete_suggestions(session_id)
            except StoreError as e:
                # Non-fatal: generation continues.
                self._fail("Failed to clear previous suggestions", e)
            self._set_suggestions([], None, None)
            self._feed = None

            page_size = self._settings.suggestions.page_size if max_results is None else max_results
            feed = SuggestionFeed(engine, participants, page_size=page_size)
            try:
                visible = await asyncio.to_thread(feed.start)
            except InsufficientParticipants:
                return GenerationOutcome.NOT_READY

            try:
                await self._store.insert_suggestions(session_id, visible)
            except StoreError as e:
                self._fail("Failed to save meetup suggestions", e)
                return GenerationOutcome.FAILED
            self._set_suggestions(visible, fingerprint, count)
            self._feed = feed
            try:
                await self._store.update_session(
                    session_id, suggestions_fingerprint=fingerprint, suggestions_participant_count=count
                )
            except StoreError as e:
                self._fail("Failed to save meetup suggestions", e)
                # Rows without a fingerprint would never be seen as stale.
                self._set_suggestions([], None, None)
                self._feed = None
                try:
                    await self._store.delete_suggestions(session_id)
                except StoreError as cleanup:
                    logger.error("Failed to remove suggestions without a fingerprint: %s", cleanup)
                return GenerationOutcome.FAILED

            # The configuration may have moved on while the run was in flight.
            if await self.clear_stale_suggestions():
                return GenerationOutcome.DISCARDED
        finally:
            self._generating = False

        logger.info("Stored %d suggestion(s) for session %s", len(visible), session_id)
        return GenerationOutcome.GENERATED

    async def load_more(self, batch_size: int | None = None) -> GenerationOutcome:
        """Append the next batch of suggestions for the same configuration."""
        if self._generating:
            return GenerationOutcome.REJECTED_IN_FLIGHT
        if await self.clear_stale_suggestions():
            return GenerationOutcome.NOT_READY
        if self._feed is None or self.session is None or not self.session.suggestions:
            return GenerationOutcome.NOT_READY
        if not self._feed.has_more:
            return GenerationOutcome.NO_MORE

        self._generating = True
        session_id = self.context.session_id
        try:
            fresh = await asyncio.to_thread(self._feed.load_more, batch_size)
            if not fresh:
                return GenerationOutcome.NO_MORE
            try:
                await self._store.insert_suggestions(session_id, fresh)
            except StoreError as e:
                self._fail("Failed to save more suggestions", e)
                return GenerationOutcome.FAILED
            session = self.session
            self._set_suggestions(
                [*session.suggestions, *fresh],
                session.suggestions_fingerprint,
                session.suggestions_participant_count,
            )
            if await self.clear_stale_suggestions():
                return GenerationOutcome.DISCARDED
        finally:
            self._generating = False

        return GenerationOutcome.GENERATED
