import logging
import math
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, constr
from sqlalchemy import case, delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hrassess.api.deps import get_hr_sync_service
from hrassess.core.auth import hash_password, require_admin
from hrassess.core.database import get_db
from hrassess.core.errors import ConflictError, NotFoundError, ValidationError
from hrassess.models.orm import ActivityLog, ActivityType, TestResult, User, UserAnswer, UserRole
from hrassess.services.activity_log import record_activity
from hrassess.services.hr_sync import HRSyncService

logger = logging.getLogger(__name__)

router = APIRouter()

PAGE_SIZE = 10


class UserCreate(BaseModel):
    name: constr(strip_whitespace=True, min_length=1)
    employee_id: constr(strip_whitespace=True, min_length=1)
    role: Literal["admin", "user"] = "user"
    password: Optional[str] = None


class UserUpdate(BaseModel):
    name: constr(strip_whitespace=True, min_length=1)
    role: Literal["admin", "user"]
    password: Optional[str] = None


@router.get("/users")
async def list_users(
    page: int = Query(1, ge=1),
    search: str = "",
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    stmt = select(User)
    count_stmt = select(func.count()).select_from(User)
    if search:
        pattern = f"%{search}%"
        cond = or_(User.name.ilike(pattern), User.employee_id.ilike(pattern))
        stmt = stmt.where(cond)
        count_stmt = count_stmt.where(cond)
    total = await db.scalar(count_stmt) or 0
    stmt = stmt.order_by(case((User.role == UserRole.ADMIN.value, 0), else_=1), User.name.asc())
    rows = (await db.scalars(stmt.limit(PAGE_SIZE).offset((page - 1) * PAGE_SIZE))).all()
    total_pages = math.ceil(total / PAGE_SIZE)
    return {
        "success": True,
        "data": [u.to_dict() for u in rows],
        "pagination": {
            "currentPage": page,
            "totalPages": total_pages,
            "totalRecords": total,
            "recordsPerPage": PAGE_SIZE,
            "hasNextPage": page < total_pages,
            "hasPrevPage": page > 1,
        },
    }


@router.post("/users", status_code=201)
async def create_user(payload: UserCreate, admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    if payload.role == UserRole.ADMIN.value and not payload.password:
        raise ValidationError("Password is required for admin users", details={"fields": {"password": "required"}})
    existing = await db.scalar(select(User.id).where(User.employee_id == payload.employee_id))
    if existing is not None:
        raise ConflictError("Employee ID already exists", details={"employee_id": payload.employee_id})

    hashed = hash_password(payload.password) if payload.role == UserRole.ADMIN.value else ""
    user = User(name=payload.name, employee_id=payload.employee_id, role=payload.role, password=hashed)
    db.add(user)
    try:
        await db.flush()
    except IntegrityError as exc:
        # lost a race with another insert of the same employee id
        raise ConflictError("Employee ID already exists", details={"employee_id": payload.employee_id}) from exc
    record_activity(db, ActivityType.USER_CREATED,
                    f'New user "{payload.name}" ({payload.employee_id}) joined the system', admin.id)
    return {"success": True, "message": "User created successfully", "data": user.to_dict()}


@router.put("/users/{user_id}")
async def update_user(
    user_id: int,
    payload: UserUpdate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    if payload.password and payload.role == UserRole.ADMIN.value and len(payload.password) < 6:
        raise ValidationError("Password must be at least 6 characters for admin users")

    was_admin = user.role == UserRole.ADMIN.value
    user.name = payload.name
    user.role = payload.role
    if payload.password and (payload.role == UserRole.ADMIN.value or was_admin):
        user.password = hash_password(payload.password)
    record_activity(db, ActivityType.USER_UPDATED, f'User "{user.name}" ({user.employee_id}) was updated', admin.id)
    await db.flush()
    return {"success": True, "message": "User updated successfully", "data": user.to_dict()}


@router.delete("/users/{user_id}")
async def delete_user(user_id: int, admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    name, employee_id = user.name, user.employee_id

    result_ids = select(TestResult.result_id).where(TestResult.user_id == user_id)
    await db.execute(delete(UserAnswer).where(UserAnswer.result_id.in_(result_ids)))
    await db.execute(delete(TestResult).where(TestResult.user_id == user_id))
    await db.execute(delete(ActivityLog).where(ActivityLog.user_id == user_id))
    await db.delete(user)
    await db.flush()

    actor_id = admin.id if admin.id != user_id else None
    record_activity(db, ActivityType.USER_DELETED,
                    f'User "{name}" ({employee_id}) was removed from the system', actor_id)
    return {"success": True, "message": "User deleted successfully"}


@router.post("/sync-users")
@router.post("/users/sync-users")
async def sync_users(admin: User = Depends(require_admin), service: HRSyncService = Depends(get_hr_sync_service)):
    logger.info("User sync requested by %s", admin.name)
    result = await service.sync(actor_id=admin.id)
    return {
        "success": True,
        "message": f"Sync completed: {result.added} new users added, {result.updated} updated.",
        "data": result.to_dict(),
    }
