from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, constr
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrassess.core.auth import require_admin
from hrassess.core.database import get_db
from hrassess.core.errors import NotFoundError
from hrassess.models.orm import ActivityType, Question, QuestionAnswer, User
from hrassess.services.activity_log import record_activity

router = APIRouter()


class AnswerIn(BaseModel):
    answer_text: constr(strip_whitespace=True, min_length=1)
    score: int


class QuestionIn(BaseModel):
    question_text: constr(strip_whitespace=True, min_length=1)
    answers: List[AnswerIn]


async def active_questions(db: AsyncSession) -> List[Question]:
    stmt = select(Question).where(Question.is_active.is_(True)).order_by(Question.question_id.asc())
    return list((await db.scalars(stmt)).all())


async def _get_active(db: AsyncSession, question_id: int) -> Question:
    q = await db.scalar(select(Question).where(Question.question_id == question_id, Question.is_active.is_(True)))
    if q is None:
        raise NotFoundError("Question", question_id)
    return q


@router.get("/questions", dependencies=[Depends(require_admin)])
async def list_questions(db: AsyncSession = Depends(get_db)):
    return {"success": True, "data": [q.to_dict() for q in await active_questions(db)]}


@router.post("/questions", status_code=201)
async def create_question(payload: QuestionIn, admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    q = Question(question_text=payload.question_text, is_active=True,
                 answers=[QuestionAnswer(answer_text=a.answer_text, score=a.score) for a in payload.answers])
    db.add(q)
    record_activity(db, ActivityType.QUESTION_CREATED, f'New question created: "{payload.question_text}"', admin.id)
    await db.flush()
    return {"success": True, "message": "Question created successfully", "data": q.to_dict()}


@router.put("/questions/{question_id}")
async def update_question(
    question_id: int,
    payload: QuestionIn,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    q = await _get_active(db, question_id)
    q.question_text = payload.question_text
    q.answers = [QuestionAnswer(answer_text=a.answer_text, score=a.score) for a in payload.answers]
    record_activity(db, ActivityType.QUESTION_UPDATED, f'Question edited: "{payload.question_text}"', admin.id)
    await db.flush()
    return {"success": True, "message": "Question updated successfully", "data": q.to_dict()}


@router.delete("/questions/{question_id}")
async def delete_question(question_id: int, admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    q = await _get_active(db, question_id)
    q.is_active = False
    record_activity(db, ActivityType.QUESTION_DELETED, f'Question deleted: "{q.question_text}"', admin.id)
    return {"success": True, "message": "Question deleted successfully"}
