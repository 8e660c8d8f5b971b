import enum
from datetime import datetime
from typing import List, Optional

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrassess.core.database import Base


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    USER = "user"


class ActivityType(str, enum.Enum):
    USER_CREATED = "user_created"
    USER_UPDATED = "user_updated"
    USER_DELETED = "user_deleted"
    SYNC_USERS = "sync_users"
    SETTING_UPDATED = "setting_updated"
    QUESTION_CREATED = "question_created"
    QUESTION_UPDATED = "question_updated"
    QUESTION_DELETED = "question_deleted"


class User(Base):
    __tablename__ = "users"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default=UserRole.USER.value)
    password: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "employee_id": self.employee_id, "role": self.role}


class AppSetting(Base):
    __tablename__ = "app_settings"
    setting_key: Mapped[str] = mapped_column(String(100), primary_key=True)
    setting_value: Mapped[str] = mapped_column(Text, nullable=False)


class ActivityLog(Base):
    __tablename__ = "activity_log"
    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    activity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    user_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Question(Base):
    __tablename__ = "questions"
    question_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    question_text: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    answers: Mapped[List["QuestionAnswer"]] = relationship(
        back_populates="question",
        cascade="all, delete-orphan",
        order_by="QuestionAnswer.answer_id",
        lazy="selectin",
    )

    def to_dict(self) -> dict:
        return {
            "question_id": self.question_id,
            "question_text": self.question_text,
            "is_active": self.is_active,
            "answers": [a.to_dict() for a in self.answers],
        }


class QuestionAnswer(Base):
    __tablename__ = "question_answers"
    answer_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    question_id: Mapped[int] = mapped_column(Integer, ForeignKey("questions.question_id", ondelete="CASCADE"))
    answer_text: Mapped[str] = mapped_column(Text, nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    question: Mapped[Question] = relationship(back_populates="answers")

    def to_dict(self) -> dict:
        return {"answer_id": self.answer_id, "answer_text": self.answer_text, "score": self.score}


class TestResult(Base):
    __tablename__ = "test_results"
    result_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    assessment_score: Mapped[int] = mapped_column(Integer, default=0)
    minigame1_score: Mapped[int] = mapped_column(Integer, default=0)
    minigame2_score: Mapped[int] = mapped_column(Integer, default=0)
    minigame3_score: Mapped[int] = mapped_column(Integer, default=0)
    minigame4_score: Mapped[int] = mapped_column(Integer, default=0)
    minigame5_score: Mapped[int] = mapped_column(Integer, default=0)
    total_score: Mapped[int] = mapped_column(Integer, default=0)
    test_timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def to_dict(self) -> dict:
        return {
            "result_id": self.result_id,
            "user_id": self.user_id,
            "assessment_score": self.assessment_score,
            "minigame1_score": self.minigame1_score,
            "minigame2_score": self.minigame2_score,
            "minigame3_score": self.minigame3_score,
            "minigame4_score": self.minigame4_score,
            "minigame5_score": self.minigame5_score,
            "total_score": self.total_score,
            "test_timestamp": self.test_timestamp.isoformat() if self.test_timestamp else None,
        }


class UserAnswer(Base):
    __tablename__ = "user_answers"
    answer_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    result_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("test_results.result_id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_id: Mapped[int] = mapped_column(Integer, nullable=False)
    question_text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    user_answer: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def to_dict(self) -> dict:
        return {
            "answer_id": self.answer_id,
            "result_id": self.result_id,
            "question_id": self.question_id,
            "question_text": self.question_text,
            "user_answer": self.user_answer,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
