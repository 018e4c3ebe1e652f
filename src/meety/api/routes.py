"""
API routes.

Endpoints:
- GET  `/api/activities`: activity categories with labels.
- GET  `/api/settings`: public settings (API key redacted).
- POST `/api/suggestions`: stateless run for a participant list.
- `/api/sessions/...`: shared sessions (participants, generation, load more).
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from meety.config.settings import get_settings
from meety.domain.errors import ConcurrentGenerationRejected, InsufficientParticipants
from meety.domain.models import (
    ACTIVITY_CATEGORIES,
    ACTIVITY_LABELS,
    ActivityCategory,
    Coordinate,
    SuggestionRequest,
    SuggestionRun,
)
from meety.recommender.engine import SuggestionEngine
from meety.session.coordinator import GenerationOutcome, SessionCoordinator
from meety.session.store import InMemorySessionStore

logger = logging.getLogger(__name__)

router = APIRouter()


class CreateSessionRequest(BaseModel):
    display_name: str | None = None


class JoinRequest(BaseModel):
    display_name: str | None = None
    location: Coordinate | None = None
    activity: ActivityCategory | None = None


class ParticipantPatch(BaseModel):
    location: Coordinate | None = None
    activity: ActivityCategory | None = None


class GenerateRequest(BaseModel):
    max_results: int | None = Field(default=None, ge=1, le=50)
    settings_overrides: dict[str, Any] | None = None


class LoadMoreRequest(BaseModel):
    batch_size: int | None = Field(default=None, ge=1, le=50)


@lru_cache
def _store() -> InMemorySessionStore:
    return InMemorySessionStore()


@lru_cache
def _engine() -> SuggestionEngine:
    return SuggestionEngine(get_settings())


@lru_cache
def _coordinators() -> dict[str, SessionCoordinator]:
    return {}


def _validation_error(e: Exception) -> HTTPException:
    return HTTPException(status_code=400, detail={"code": "VALIDATION_ERROR", "message": str(e)})


def _not_found(session_id: str) -> HTTPException:
    return HTTPException(
        status_code=404, detail={"code": "SESSION_NOT_FOUND", "message": f"Session '{session_id}' not found"}
    )


def _new_coordinator() -> SessionCoordinator:
    engine = _engine()
    return SessionCoordinator(_store(), engine, settings=engine.settings)


async def _coordinator(session_id: str) -> SessionCoordinator:
    """Return the server-side coordinator for a session, attaching on first use."""
    registry = _coordinators()
    coord = registry.get(session_id)
    if coord is not None and coord.session is not None:
        return coord
    coord = _new_coordinator()
    if await coord.attach(session_id) is None:
        raise _not_found(session_id)
    registry[session_id] = coord
    return coord


async def _view(coord: SessionCoordinator, outcome: GenerationOutcome | None = None) -> dict:
    await _store().flush()
    session = coord.session
    return {
        "session": session.model_dump(mode="json") if session else None,
        "stale": coord.are_suggestions_stale(),
        "can_generate": coord.can_generate,
        "is_generating": coord.is_generating,
        "has_more": coord.has_more,
        "error": coord.error,
        "share_link": coord.share_link(),
        "outcome": outcome.value if outcome else None,
    }


def _require_participant(coord: SessionCoordinator, participant_id: str) -> None:
    if not any(p.id == participant_id for p in coord.participants):
        raise HTTPException(
            status_code=404,
            detail={"code": "PARTICIPANT_NOT_FOUND", "message": f"Participant '{participant_id}' not found"},
        )


def _check_outcome(coord: SessionCoordinator, outcome: GenerationOutcome) -> None:
    if outcome is GenerationOutcome.NOT_READY:
        raise _validation_error(InsufficientParticipants(ready_count=0))
    if outcome is GenerationOutcome.REJECTED_IN_FLIGHT:
        raise ConcurrentGenerationRejected("A generation is already in progress for this session")
    if outcome is GenerationOutcome.FAILED:
        raise HTTPException(status_code=500, detail={"code": "STORE_ERROR", "message": coord.error or "failed"})


@router.get("/api/activities")
def get_activities() -> dict:
    return {"activities": [{"id": c, "label": ACTIVITY_LABELS[c]} for c in ACTIVITY_CATEGORIES]}


@router.get("/api/settings")
def get_public_settings() -> dict:
    """Return safe-to-expose settings (credentials removed)."""
    data = get_settings().model_dump(mode="json")
    data.get("places", {}).pop("api_key", None)
    return {
        "app": {"name": data["app"]["name"], "public_base_url": data["app"]["public_base_url"]},
        "places": data["places"],
        "fallback": data["fallback"],
        "suggestions": data["suggestions"],
        "session": data["session"],
    }


@router.post("/api/suggestions", response_model=SuggestionRun)
def post_suggestions(req: SuggestionRequest) -> SuggestionRun:
    """Run the engine for a participant snapshot without a session."""
    try:
        engine = _engine().with_overrides(req.settings_overrides)
        return engine.run(req.participants, req.max_results)
    except ValueError as e:
        raise _validation_error(e) from e
    except Exception as e:
        logger.exception("Suggestion run failed")
        raise HTTPException(status_code=500, detail={"code": "INTERNAL_ERROR", "message": str(e)}) from e


@router.post("/api/sessions", status_code=201)
async def post_session(req: CreateSessionRequest | None = None) -> dict:
    coord = _new_coordinator()
    session = await coord.create_session(req.display_name if req else None)
    if session is None:
        raise HTTPException(status_code=500, detail={"code": "STORE_ERROR", "message": coord.error})
    _coordinators()[session.id] = coord
    view = await _view(coord)
    view["participant_id"] = coord.context.participant_id
    return view


@router.get("/api/sessions/{session_id}")
async def get_session(session_id: str) -> dict:
    coord = await _coordinator(session_id)
    await coord.refresh()
    return await _view(coord)


@router.delete("/api/sessions/{session_id}")
async def delete_session(session_id: str) -> dict:
    coord = await _coordinator(session_id)
    if not await coord.close_session():
        raise HTTPException(status_code=500, detail={"code": "STORE_ERROR", "message": coord.error})
    _coordinators().pop(session_id, None)
    return {"session_id": session_id, "closed": True}


@router.post("/api/sessions/{session_id}/participants", status_code=201)
async def post_participant(session_id: str, req: JoinRequest) -> dict:
    coord = await _coordinator(session_id)
    if await coord.join_session(session_id, req.display_name) is None:
        if coord.error == "Session not found":
            raise _not_found(session_id)
        raise HTTPException(status_code=500, detail={"code": "STORE_ERROR", "message": coord.error})
    participant_id = coord.context.participant_id
    if req.location is not None:
        await coord.update_location(req.location, participant_id=participant_id)
    if req.activity is not None:
        await coord.update_activity(req.activity, participant_id=participant_id)
    view = await _view(coord)
    view["participant_id"] = participant_id
    return view


@router.patch("/api/sessions/{session_id}/participants/{participant_id}")
async def patch_participant(session_id: str, participant_id: str, req: ParticipantPatch) -> dict:
    coord = await _coordinator(session_id)
    _require_participant(coord, participant_id)
    ok = True
    if req.location is not None:
        ok = await coord.update_location(req.location, participant_id=participant_id) and ok
    if req.activity is not None:
        ok = await coord.update_activity(req.activity, participant_id=participant_id) and ok
    if not ok:
        raise HTTPException(status_code=500, detail={"code": "STORE_ERROR", "message": coord.error})
    return await _view(coord)


@router.delete("/api/sessions/{session_id}/participants/{participant_id}")
async def delete_participant(session_id: str, participant_id: str) -> dict:
    coord = await _coordinator(session_id)
    _require_participant(coord, participant_id)
    if not await coord.remove_participant(participant_id):
        raise HTTPException(status_code=500, detail={"code": "STORE_ERROR", "message": coord.error})
    return await _view(coord)


@router.post("/api/sessions/{session_id}/suggestions/generate")
async def post_generate(session_id: str, req: GenerateRequest | None = None) -> dict:
    req = req or GenerateRequest()
    coord = await _coordinator(session_id)
    try:
        outcome = await coord.generate(req.max_results, overrides=req.settings_overrides)
    except ValueError as e:
        raise _validation_error(e) from e
    _check_outcome(coord, outcome)
    return await _view(coord, outcome)


@router.post("/api/sessions/{session_id}/suggestions/more")
async def post_load_more(session_id: str, req: LoadMoreRequest | None = None) -> dict:
    req = req or LoadMoreRequest()
    coord = await _coordinator(session_id)
    outcome = await coord.load_more(req.batch_size)
    _check_outcome(coord, outcome)
    return await _view(coord, outcome)
