"""Goal store and session store routes."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Literal

import aiosqlite
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from pomogoal.focus.models import parse_timestamp
from pomogoal.storage.database import Database
from pomogoal.web.app import get_db, get_user_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/goals", tags=["goals"])

DB_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
GOAL_STATUSES = ("Pending", "In Progress", "Completed")


class GoalCreate(BaseModel):
    """New goal."""
    title: str = Field(min_length=1)
    description: str | None = None
    category: str | None = None
    priority: Literal["Low", "Medium", "High"] = "Medium"
    deadline: date | None = None
    estimated_pomodoros: int = Field(default=1, ge=1)


class PomodoroRecord(BaseModel):
    """A completed work interval as submitted by the timer."""
    model_config = ConfigDict(populate_by_name=True)

    goal_id: int | None = Field(default=None, alias="goalId")
    start_time: datetime = Field(alias="startTime")
    end_time: datetime = Field(alias="endTime")
    completed: bool = True
    pomodoro_number: int | None = Field(default=None, alias="pomodoroNumber")
    total_pomodoros: int | None = Field(default=None, alias="totalPomodoros")


class PomodoroResponse(BaseModel):
    """Result of recording a session."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: str = "Session recorded successfully"
    goal_updated: bool = Field(default=False, serialization_alias="goalUpdated")


class TimerStatusUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    goal_id: int | None = Field(default=None, alias="goalId")
    status: str | None = None


def _not_found() -> JSONResponse:
    return JSONResponse(status_code=404, content={"success": False, "message": "Goal not found"})


def _to_db_time(value: datetime) -> str:
    return parse_timestamp(value).strftime(DB_TIME_FORMAT)


def format_session(row: dict[str, Any]) -> dict[str, Any]:
    """Session row in the shape the timer page rehydrates from."""
    start = datetime.strptime(row["start_time"], DB_TIME_FORMAT)
    end = datetime.strptime(row["end_time"], DB_TIME_FORMAT) if row.get("end_time") else start
    return {
        "id": row["id"],
        "startTime": start.isoformat(),
        "endTime": end.isoformat(),
        "duration": int((end - start).total_seconds()),
        "isWorkSession": True,
        "goalId": row.get("goal_id"),
        "goalText": row.get("goal_title") or "No goal selected",
        "pomodoroNumber": row.get("pomodoro_number") or 1,
        "totalPomodoros": row.get("total_pomodoros") or 1,
    }


async def _owned_goal(db: Database, goal_id: int, user_id: str) -> dict[str, Any] | None:
    return await db.fetch_one(
        "SELECT * FROM goals WHERE id = ? AND user_id = ?", (goal_id, user_id)
    )


async def _active_goals(db: Database, user_id: str) -> list[dict[str, Any]]:
    return await db.fetch_all(
        "SELECT * FROM goals WHERE user_id = ? AND status != 'Completed' ORDER BY id",
        (user_id,),
    )


@router.get("")
async def list_goals(
    db: Database = Depends(get_db),
    user_id: str = Depends(get_user_id),
) -> list[dict[str, Any]]:
    """Active (not completed) goals of the user."""
    return await _active_goals(db, user_id)


@router.post("", status_code=201)
async def create_goal(
    goal: GoalCreate,
    db: Database = Depends(get_db),
    user_id: str = Depends(get_user_id),
) -> dict[str, Any]:
    data = goal.model_dump()
    data["deadline"] = goal.deadline.isoformat() if goal.deadline else None
    data["user_id"] = user_id
    goal_id = await db.insert("goals", data)
    logger.info(f"Goal {goal_id} created for user {user_id}")
    return {"success": True, "goal": await _owned_goal(db, goal_id, user_id)}


@router.get("/timer")
async def timer_bootstrap(
    goal_id: int | None = Query(None, alias="goalId"),
    duration: str | None = Query(None),
    break_duration: str | None = Query(None, alias="breakDuration"),
    auto_start: str | None = Query(None, alias="autoStart"),
    db: Database = Depends(get_db),
    user_id: str = Depends(get_user_id),
) -> dict[str, Any]:
    """Everything the timer page needs at load: active goals and today's sessions."""
    rows = await db.fetch_all(
        """
        SELECT p.*, g.title AS goal_title
        FROM pomodoro_sessions p
        LEFT JOIN goals g ON p.goal_id = g.id
        WHERE p.user_id = ? AND p.completed = 1 AND date(p.start_time) = ?
        ORDER BY p.start_time
        """,
        (user_id, date.today().isoformat()),
    )
    return {
        "goals": await _active_goals(db, user_id),
        "sessions": [format_session(row) for row in rows],
        "goalId": goal_id,
        "duration": duration or 25,
        "breakDuration": break_duration or 5,
        "autoStart": auto_start,
    }


@router.post("/pomodoro")
async def record_pomodoro(
    record: PomodoroRecord,
    db: Database = Depends(get_db),
    user_id: str = Depends(get_user_id),
) -> Any:
    """Record a completed work interval; the final pomodoro completes its goal."""
    pomodoro_number = record.pomodoro_number or 1
    total_pomodoros = record.total_pomodoros or 1

    logger.info(
        f"Recording pomodoro for user {user_id}: goal={record.goal_id or 'none'} "
        f"{pomodoro_number} of {total_pomodoros}"
    )

    try:
        await db.insert(
            "pomodoro_sessions",
            {
                "user_id": user_id,
                "goal_id": record.goal_id,
                "start_time": _to_db_time(record.start_time),
                "end_time": _to_db_time(record.end_time),
                "completed": record.completed,
                "pomodoro_number": pomodoro_number,
                "total_pomodoros": total_pomodoros,
            },
        )

        goal_updated = False
        if record.goal_id and record.completed and pomodoro_number >= total_pomodoros:
            changed = await db.execute_rowcount(
                "UPDATE goals SET status = 'Completed' WHERE id = ? AND user_id = ?",
                (record.goal_id, user_id),
            )
            goal_updated = changed > 0
            if goal_updated:
                logger.info(f"Goal {record.goal_id} completed by its final pomodoro")
    except aiosqlite.Error as e:
        logger.error(f"Error recording pomodoro session: {e}")
        return JSONResponse(
            status_code=500, content={"success": False, "error": "Failed to record session"}
        )

    return PomodoroResponse(success=True, goal_updated=goal_updated).model_dump(by_alias=True)


@router.post("/timer-status")
async def update_timer_status(
    update: TimerStatusUpdate,
    db: Database = Depends(get_db),
    user_id: str = Depends(get_user_id),
) -> Any:
    """Set a goal's status when the timer starts or stops working on it."""
    if not update.goal_id or not update.status:
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": "Goal ID and status are required"},
        )
    if update.status not in GOAL_STATUSES:
        return JSONResponse(
            status_code=400, content={"success": False, "message": "Invalid status value"}
        )
    if await _owned_goal(db, update.goal_id, user_id) is None:
        return _not_found()

    await db.execute("UPDATE goals SET status = ? WHERE id = ?", (update.status, update.goal_id))
    return {"success": True, "message": f"Goal status updated to {update.status}"}


@router.get("/{goal_id}/details")
async def goal_details(
    goal_id: int,
    db: Database = Depends(get_db),
    user_id: str = Depends(get_user_id),
) -> Any:
    goal = await _owned_goal(db, goal_id, user_id)
    if goal is None:
        return _not_found()
    return {"success": True, "goal": goal}


@router.post("/{goal_id}/complete")
async def complete_goal(
    goal_id: int,
    db: Database = Depends(get_db),
    user_id: str = Depends(get_user_id),
) -> Any:
    """Mark a goal completed. Completing it again succeeds too."""
    if await _owned_goal(db, goal_id, user_id) is None:
        return _not_found()

    await db.execute("UPDATE goals SET status = 'Completed' WHERE id = ?", (goal_id,))
    logger.info(f"Goal {goal_id} marked as completed")
    return {"success": True, "message": "Goal marked as completed"}


@router.delete("/{goal_id}")
async def delete_goal(
    goal_id: int,
    db: Database = Depends(get_db),
    user_id: str = Depends(get_user_id),
) -> Any:
    if await _owned_goal(db, goal_id, user_id) is None:
        return _not_found()

    await db.execute("DELETE FROM goals WHERE id = ?", (goal_id,))
    logger.info(f"Goal {goal_id} deleted")
    return {"success": True, "message": "Goal deleted"}
