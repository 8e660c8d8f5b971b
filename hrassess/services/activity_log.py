from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from hrassess.models.orm import ActivityLog, ActivityType


def record_activity(
    session: AsyncSession,
    activity_type: ActivityType,
    description: str,
    user_id: Optional[int] = None,
) -> ActivityLog:
    """Add an audit entry to ``session``; it is written with the caller's commit."""
    entry = ActivityLog(activity_type=activity_type.value, description=description, user_id=user_id)
    session.add(entry)
    return entry
