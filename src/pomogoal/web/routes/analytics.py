"""Analytics routes for productivity statistics."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any

from fastapi import APIRouter, Depends

from pomogoal.storage.database import Database
from pomogoal.web.app import get_db, get_user_id

router = APIRouter(tags=["analytics"])

FOCUS_SECONDS_SQL = "(julianday(end_time) - julianday(start_time)) * 86400"


# ============================================================================
# CALCULATION FUNCTIONS
# ============================================================================

def calculate_status_counts(rows: list[dict[str, Any]]) -> dict[str, int]:
    """Goal counts per status, with every known status present."""
    counts = {"Pending": 0, "In Progress": 0, "Completed": 0}
    for row in rows:
        counts[row["status"]] = row["count"]
    return counts


def calculate_heatmap(rows: list[dict[str, Any]]) -> list[list[int]]:
    """7x24 grid of session counts; rows are weekdays starting on Sunday."""
    grid = [[0] * 24 for _ in range(7)]
    for row in rows:
        day = int(row["day_of_week"])
        hour = int(row["hour_of_day"])
        if 0 <= day < 7 and 0 <= hour < 24:
            grid[day][hour] = row["session_count"]
    return grid


def fill_daily_minutes(rows: list[dict[str, Any]], end: date, days: int = 7) -> list[dict[str, Any]]:
    """Focus minutes per day for the ``days`` days ending at ``end``, zero-filled."""
    by_date = {row["date"]: row["minutes"] or 0 for row in rows}
    result = []
    for offset in range(days - 1, -1, -1):
        day = (end - timedelta(days=offset)).isoformat()
        result.append({"date": day, "minutes": round(by_date.get(day, 0))})
    return result


# ============================================================================
# ROUTES
# ============================================================================

@router.get("/analytics")
async def analytics_summary(
    db: Database = Depends(get_db),
    user_id: str = Depends(get_user_id),
) -> dict[str, Any]:
    """Goal and focus statistics for the user."""
    status_rows = await db.fetch_all(
        "SELECT status, COUNT(*) AS count FROM goals WHERE user_id = ? GROUP BY status",
        (user_id,),
    )

    totals = await db.fetch_one(
        f"""
        SELECT COUNT(*) AS sessions, COALESCE(SUM({FOCUS_SECONDS_SQL}), 0) AS seconds
        FROM pomodoro_sessions
        WHERE user_id = ? AND completed = 1
        """,
        (user_id,),
    ) or {"sessions": 0, "seconds": 0}

    categories = await db.fetch_all(
        """
        SELECT COALESCE(category, 'Uncategorized') AS category, COUNT(*) AS count
        FROM goals WHERE user_id = ?
        GROUP BY COALESCE(category, 'Uncategorized')
        """,
        (user_id,),
    )

    today = date.today()
    week_start = (today - timedelta(days=6)).isoformat()
    weekly = await db.fetch_all(
        f"""
        SELECT date(start_time) AS date, SUM({FOCUS_SECONDS_SQL}) / 60 AS minutes
        FROM pomodoro_sessions
        WHERE user_id = ? AND completed = 1 AND date(start_time) >= ?
        GROUP BY date(start_time)
        ORDER BY date
        """,
        (user_id, week_start),
    )

    month_start = (today - timedelta(days=30)).isoformat()
    heatmap_rows = await db.fetch_all(
        """
        SELECT CAST(strftime('%w', start_time) AS INTEGER) AS day_of_week,
               CAST(strftime('%H', start_time) AS INTEGER) AS hour_of_day,
               COUNT(*) AS session_count
        FROM pomodoro_sessions
        WHERE user_id = ? AND completed = 1 AND date(start_time) >= ?
        GROUP BY day_of_week, hour_of_day
        """,
        (user_id, month_start),
    )

    seconds = int(round(totals["seconds"] or 0))
    return {
        "status_counts": calculate_status_counts(status_rows),
        "total_sessions": totals["sessions"],
        "total_focus_minutes": seconds // 60,
        "total_focus_hours": seconds // 3600,
        "categories": {row["category"]: row["count"] for row in categories},
        "weekly_focus": fill_daily_minutes(weekly, today),
        "heatmap": calculate_heatmap(heatmap_rows),
    }
