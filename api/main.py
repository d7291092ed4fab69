# ABOUTME: FastAPI app: POST /api/goals/refine (goal refinement), saved-goal CRUD, telemetry summary and logs.
# ABOUTME: 400 on missing input or guardrail rejection, 500 on missing AI config, 502 on model/transport failure.

import json
import logging
from datetime import date
from typing import Any
from uuid import UUID

from fastapi import APIRouter, FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from core.config import CORS_ORIGINS, DEFAULT_GOALS_PAGE_SIZE, MAX_GOALS_PAGE_SIZE
from core.database import Goal, get_session
from core.errors import ConfigurationError
from core.schemas import (
    MAX_CONFIDENCE_SCORE,
    MAX_KEY_RESULTS,
    MIN_CONFIDENCE_SCORE,
    MIN_KEY_RESULTS,
    GuardrailRejection,
)
from core.telemetry import list_call_logs, summarize_call_logs
from goal_coach.refiner import refine_goal

goals_router = APIRouter(prefix="/api/goals", tags=["goals"])
telemetry_router = APIRouter(prefix="/api/telemetry", tags=["telemetry"])


class RefineRequest(BaseModel):
    goal: Any = None


class GoalCreateRequest(BaseModel):
    user_input: str
    refined_goal: str = Field(min_length=1)
    key_results: list[str] = Field(min_length=MIN_KEY_RESULTS, max_length=MAX_KEY_RESULTS)
    confidence_score: int = Field(ge=MIN_CONFIDENCE_SCORE, le=MAX_CONFIDENCE_SCORE)
    status: str = "saved"


def _goal_to_json(goal: Goal) -> dict:
    """Serialize a Goal row to the same dict shape as POST /api/goals response."""
    return {
        "id": str(goal.id),
        "original_input": goal.original_input,
        "refined_goal": goal.refined_goal,
        "key_results": json.loads(goal.key_results) if goal.key_results else [],
        "confidence_score": goal.confidence_score,
        "status": goal.status,
        "created_at": goal.created_at.isoformat(),
    }


def _goal_not_found(goal_id: UUID) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content={"message": f"Goal with ID {goal_id} not found"},
    )


@goals_router.post("/refine")
def post_refine(req: RefineRequest):
    """Refine a vague goal into a SMART goal with 3-5 key results."""
    if not req.goal or not isinstance(req.goal, str):
        return JSONResponse(
            status_code=400,
            content={"message": "Goal input is required and must be a string."},
        )
    try:
        result = refine_goal(req.goal)
    except ConfigurationError:
        logging.exception("refine_goal failed (configuration)")
        return JSONResponse(
            status_code=500,
            content={"message": "AI service is not configured."},
        )
    except Exception:
        logging.exception("refine_goal failed")
        return JSONResponse(
            status_code=502,
            content={"message": "AI model failed to generate a valid response."},
        )
    if isinstance(result, GuardrailRejection):
        return JSONResponse(status_code=400, content=result.model_dump())
    return result.model_dump()


@goals_router.post("", status_code=201)
def post_goal(req: GoalCreateRequest):
    """Persist an approved goal to the database."""
    try:
        with get_session() as session:
            goal = Goal(
                original_input=req.user_input,
                refined_goal=req.refined_goal,
                key_results=json.dumps(req.key_results),
                confidence_score=req.confidence_score,
                status=req.status,
            )
            session.add(goal)
            session.commit()
            session.refresh(goal)
            return _goal_to_json(goal)
    except SQLAlchemyError:
        logging.exception("post_goal failed (database error)")
        return JSONResponse(
            status_code=500,
            content={"message": "Could not save goal."},
        )


@goals_router.get("")
def get_goals(
    limit: int = Query(DEFAULT_GOALS_PAGE_SIZE, ge=0, le=MAX_GOALS_PAGE_SIZE),
    offset: int = Query(0, ge=0),
):
    """List saved goals, newest first. Returns { goals: [...], total: N }."""
    try:
        with get_session() as session:
            total = session.exec(select(func.count()).select_from(Goal)).one()
            stmt = (
                select(Goal)
                .order_by(Goal.created_at.desc())
                .limit(limit)
                .offset(offset)
            )
            goals = list(session.exec(stmt))
        return {"goals": [_goal_to_json(g) for g in goals], "total": total}
    except SQLAlchemyError:
        logging.exception("get_goals failed (database error)")
        return JSONResponse(
            status_code=500,
            content={"message": "Could not load goals."},
        )


@goals_router.get("/{goal_id}")
def get_goal(goal_id: UUID):
    try:
        with get_session() as session:
            goal = session.get(Goal, goal_id)
            if goal is None:
                return _goal_not_found(goal_id)
            return _goal_to_json(goal)
    except SQLAlchemyError:
        logging.exception("get_goal failed (database error)")
        return JSONResponse(
            status_code=500,
            content={"message": "Could not load goal."},
        )


@goals_router.delete("/{goal_id}")
def delete_goal(goal_id: UUID):
    try:
        with get_session() as session:
            goal = session.get(Goal, goal_id)
            if goal is None:
                return _goal_not_found(goal_id)
            session.delete(goal)
            session.commit()
        return {"message": f"Goal {goal_id} deleted successfully"}
    except SQLAlchemyError:
        logging.exception("delete_goal failed (database error)")
        return JSONResponse(
            status_code=500,
            content={"message": "Could not delete goal."},
        )


@telemetry_router.get("")
def get_telemetry_summary():
    """Aggregate call counts, latency, tokens and cost over all logged refinement calls."""
    try:
        return summarize_call_logs()
    except SQLAlchemyError:
        logging.exception("get_telemetry_summary failed (database error)")
        return JSONResponse(
            status_code=500,
            content={"message": "Could not load telemetry."},
        )


@telemetry_router.get("/logs")
def get_telemetry_logs(day: date | None = Query(None, alias="date")):
    """List logged refinement calls newest first; ?date=YYYY-MM-DD limits to one UTC day."""
    try:
        logs = list_call_logs(day)
    except SQLAlchemyError:
        logging.exception("get_telemetry_logs failed (database error)")
        return JSONResponse(
            status_code=500,
            content={"message": "Could not load telemetry logs."},
        )
    return {
        "logs": logs,
        "count": len(logs),
        "date_filter": day.isoformat() if day else "all",
    }


app = FastAPI(title="AI Goal Coach API")
app.include_router(goals_router)
app.include_router(telemetry_router)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/api/health")
def get_health():
    return {"status": "healthy"}
