"""
Endpoints used by the Android assessment app.

Settings here use the Android spelling (``minigame1_enabled``); the admin
console uses the backend spelling for the same values.
"""
import logging
from datetime import datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Request
from pydantic import BaseModel, constr
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrassess.api.deps import get_broadcaster, get_settings_service
from hrassess.api.questions import active_questions
from hrassess.api.streaming import open_settings_stream
from hrassess.core.auth import TokenData, create_token, get_current_user, validate_api_key
from hrassess.core.database import get_db
from hrassess.core.errors import ConflictError, NotFoundError
from hrassess.models.orm import TestResult, User, UserAnswer
from hrassess.services.broadcast import SettingsBroadcaster
from hrassess.services.naming import NamingConvention
from hrassess.services.settings_sync import SettingsSyncService

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(validate_api_key)])


class AndroidLogin(BaseModel):
    employee_id: constr(strip_whitespace=True, min_length=1)


class ResultSubmit(BaseModel):
    assessment_score: int = 0
    minigame1_score: int = 0
    minigame2_score: int = 0
    minigame3_score: int = 0
    minigame4_score: Optional[int] = 0
    minigame5_score: Optional[int] = 0
    total_score: int = 0


class AnswerItem(BaseModel):
    question_id: int
    question_text: str = ""
    user_answer: str = ""


class AnswersSubmit(BaseModel):
    result_id: int
    answers: List[AnswerItem]


@router.post("/login")
async def login(payload: AndroidLogin, db: AsyncSession = Depends(get_db)):
    user = await db.scalar(select(User).where(User.employee_id == payload.employee_id))
    if user is None:
        raise NotFoundError("User", payload.employee_id)
    return {"success": True, "message": "Login successful", "data": user.to_dict(), "token": create_token(user)}


@router.get("/questions")
async def list_questions(db: AsyncSession = Depends(get_db)):
    return {"success": True, "data": [q.to_dict() for q in await active_questions(db)]}


@router.get("/settings")
async def get_settings(service: SettingsSyncService = Depends(get_settings_service)):
    return {"success": True, "data": await service.get_settings(NamingConvention.EXTERNAL)}


@router.post("/settings")
async def update_settings(
    payload: Dict[str, Any] = Body(...),
    service: SettingsSyncService = Depends(get_settings_service),
):
    data = await service.update_settings(payload, convention=NamingConvention.EXTERNAL)
    return {"success": True, "message": "Settings saved successfully", "data": data}


@router.get("/settings/stream")
async def stream_settings(
    request: Request,
    broadcaster: SettingsBroadcaster = Depends(get_broadcaster),
    service: SettingsSyncService = Depends(get_settings_service),
):
    return await open_settings_stream(request, broadcaster, service, NamingConvention.EXTERNAL)


@router.post("/results")
async def submit_results(
    payload: ResultSubmit,
    token: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    # one submission per user per (UTC) day; the user comes from the token, never the body
    day_start = datetime.combine(datetime.now(timezone.utc).date(), time.min, tzinfo=timezone.utc)
    existing = await db.scalar(
        select(TestResult.result_id).where(
            TestResult.user_id == token.sub,
            TestResult.test_timestamp >= day_start,
            TestResult.test_timestamp < day_start + timedelta(days=1),
        )
    )
    if existing is not None:
        raise ConflictError("You have already completed the assessment today.")

    result = TestResult(
        user_id=token.sub,
        assessment_score=payload.assessment_score,
        minigame1_score=payload.minigame1_score,
        minigame2_score=payload.minigame2_score,
        minigame3_score=payload.minigame3_score,
        minigame4_score=payload.minigame4_score or 0,
        minigame5_score=payload.minigame5_score or 0,
        total_score=payload.total_score,
        test_timestamp=datetime.now(timezone.utc),
    )
    db.add(result)
    await db.flush()
    logger.info("Test result saved with ID: %s", result.result_id)
    return {"success": True, "data": result.to_dict()}


@router.post("/user-answers", status_code=201)
async def submit_answers(
    payload: AnswersSubmit,
    token: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.get(TestResult, payload.result_id)
    if result is None or result.user_id != token.sub:
        raise NotFoundError("TestResult", payload.result_id)

    # get_db commits the whole batch or none of it
    now = datetime.now(timezone.utc)
    db.add_all([
        UserAnswer(
            result_id=payload.result_id,
            question_id=item.question_id,
            question_text=item.question_text,
            user_answer=item.user_answer,
            created_at=now,
        )
        for item in payload.answers
    ])
    await db.flush()
    logger.info("Saved %d answers for result %s", len(payload.answers), payload.result_id)
    return {
        "success": True,
        "message": f"Successfully saved {len(payload.answers)} answers",
        "data": {"result_id": payload.result_id, "answers_saved": len(payload.answers)},
    }
