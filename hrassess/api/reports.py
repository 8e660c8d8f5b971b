"""
Read-only reporting for the admin console: dashboard figures, the test
history with Fit/Unfit verdicts, and the answers given in one test.
"""
import logging
import math
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrassess.api.deps import get_settings_store
from hrassess.core.auth import require_admin
from hrassess.core.database import get_db
from hrassess.core.errors import ValidationError
from hrassess.models.orm import ActivityLog, Question, QuestionAnswer, TestResult, User, UserAnswer, UserRole
from hrassess.services.settings_store import SettingsStore

logger = logging.getLogger(__name__)

router = APIRouter()

PAGE_SIZE = 10
RECENT_LIMIT = 5
ACTIVITY_LIMIT = 10
DEFAULT_PASSING_SCORE = 70


async def passing_score(store: SettingsStore) -> int:
    snapshot = await store.get_all()
    value = snapshot.get("minimum_passing_score")
    return value if isinstance(value, int) and not isinstance(value, bool) else DEFAULT_PASSING_SCORE


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@router.get("/dashboard")
async def dashboard(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    store: SettingsStore = Depends(get_settings_store),
):
    total_users = await db.scalar(select(func.count()).select_from(User)) or 0
    total_results = await db.scalar(select(func.count()).select_from(TestResult)) or 0
    total_questions = await db.scalar(select(func.count()).select_from(Question)) or 0

    threshold = await passing_score(store)
    passed = await db.scalar(
        select(func.count()).select_from(TestResult).where(TestResult.total_score >= threshold)
    ) or 0
    success_rate = round(passed / total_results * 100) if total_results else 0

    recent_users = (await db.scalars(select(User).order_by(User.id.desc()).limit(RECENT_LIMIT))).all()
    recent_tests = (
        await db.execute(
            select(TestResult.result_id, TestResult.test_timestamp, TestResult.total_score, User.name)
            .join(User, User.id == TestResult.user_id)
            .order_by(TestResult.test_timestamp.desc(), TestResult.result_id.desc())
            .limit(RECENT_LIMIT)
        )
    ).all()
    recent_activities = (
        await db.execute(
            select(ActivityLog.activity_type, ActivityLog.description, ActivityLog.timestamp, User.name)
            .outerjoin(User, User.id == ActivityLog.user_id)
            .order_by(ActivityLog.timestamp.desc(), ActivityLog.id.desc())
            .limit(ACTIVITY_LIMIT)
        )
    ).all()

    return {
        "success": True,
        "data": {
            "totalUsers": total_users,
            "totalTestResults": total_results,
            "totalQuestions": total_questions,
            "successRate": success_rate,
            "recentUsers": [{"id": u.id, "name": u.name, "employee_id": u.employee_id} for u in recent_users],
            "recentTests": [
                {"result_id": r.result_id, "test_timestamp": _iso(r.test_timestamp),
                 "total_score": r.total_score, "user_name": r.name}
                for r in recent_tests
            ],
            "recentActivities": [
                {"activity_type": a.activity_type, "description": a.description,
                 "timestamp": _iso(a.timestamp), "admin_name": a.name}
                for a in recent_activities
            ],
        },
    }


@router.get("/history")
async def history(
    page: int = Query(1, ge=1),
    search: str = "",
    date_filter: str = Query("", alias="date"),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    store: SettingsStore = Depends(get_settings_store),
):
    conditions = [User.role != UserRole.ADMIN.value]
    if search:
        pattern = f"%{search}%"
        conditions.append(or_(User.name.ilike(pattern), User.employee_id.ilike(pattern)))
    if date_filter:
        try:
            day = date.fromisoformat(date_filter)
        except ValueError as exc:
            raise ValidationError("date must be YYYY-MM-DD", details={"date": date_filter}) from exc
        day_start = datetime.combine(day, time.min, tzinfo=timezone.utc)
        conditions.append(TestResult.test_timestamp >= day_start)
        conditions.append(TestResult.test_timestamp < day_start + timedelta(days=1))

    total = await db.scalar(
        select(func.count()).select_from(TestResult).join(User, User.id == TestResult.user_id).where(*conditions)
    ) or 0
    rows = (
        await db.execute(
            select(TestResult, User.name, User.employee_id)
            .join(User, User.id == TestResult.user_id)
            .where(*conditions)
            .order_by(TestResult.test_timestamp.desc(), TestResult.result_id.desc())
            .limit(PAGE_SIZE)
            .offset((page - 1) * PAGE_SIZE)
        )
    ).all()

    threshold = await passing_score(store)
    data = []
    for result, name, employee_id in rows:
        entry = result.to_dict()
        entry.update(
            name=name,
            employee_id=employee_id,
            status="Fit" if result.total_score >= threshold else "Unfit",
        )
        data.append(entry)

    total_pages = math.ceil(total / PAGE_SIZE)
    return {
        "success": True,
        "data": data,
        "pagination": {
            "currentPage": page,
            "totalPages": total_pages,
            "totalRecords": total,
            "recordsPerPage": PAGE_SIZE,
            "hasNextPage": page < total_pages,
            "hasPrevPage": page > 1,
        },
        "minimumPassingScore": threshold,
    }


@router.get("/user_answers/{result_id}")
async def user_answers(result_id: int, admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    rows = (
        await db.execute(
            select(UserAnswer, QuestionAnswer.answer_text, QuestionAnswer.score, TestResult.assessment_score)
            .outerjoin(QuestionAnswer, QuestionAnswer.question_id == UserAnswer.question_id)
            .outerjoin(TestResult, TestResult.result_id == UserAnswer.result_id)
            .where(UserAnswer.result_id == result_id)
            .order_by(UserAnswer.question_id, UserAnswer.answer_id, QuestionAnswer.answer_id)
        )
    ).all()
    if not rows:
        return {
            "success": True,
            "message": "No answers found for this test result",
            "data": {"resultId": result_id, "totalQuestions": 0, "answers": []},
        }

    grouped: Dict[int, Dict[str, Any]] = {}
    for answer, answer_text, score, assessment_score in rows:
        entry = grouped.setdefault(answer.question_id, {
            "questionId": answer.question_id,
            "questionText": answer.question_text,
            "userAnswer": answer.user_answer,
            "totalAssessmentScore": assessment_score,
            "possibleAnswers": [],
        })
        if answer_text is not None:
            entry["possibleAnswers"].append({
                "answerText": answer_text,
                "score": score,
                "isUserAnswer": answer_text == answer.user_answer,
            })

    answers: List[Dict[str, Any]] = list(grouped.values())
    return {
        "success": True,
        "data": {"resultId": result_id, "totalQuestions": len(answers), "answers": answers},
    }
