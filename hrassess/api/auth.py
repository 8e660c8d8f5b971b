from fastapi import APIRouter, Depends
from pydantic import BaseModel, constr
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrassess.core.auth import create_token, require_admin, verify_password
from hrassess.core.database import get_db
from hrassess.core.errors import AuthenticationError
from hrassess.models.orm import User, UserRole

router = APIRouter()


class AdminLogin(BaseModel):
    employee_id: constr(strip_whitespace=True, min_length=1)
    password: constr(min_length=1)


@router.post("/login")
async def login(payload: AdminLogin, db: AsyncSession = Depends(get_db)):
    user = await db.scalar(
        select(User).where(User.employee_id == payload.employee_id, User.role == UserRole.ADMIN.value)
    )
    if user is None or not verify_password(payload.password, user.password):
        raise AuthenticationError("Invalid credentials")
    return {
        "success": True,
        "message": "Login successful",
        "data": {
            "token": create_token(user),
            "admin": {"id": user.id, "name": user.name, "employee_id": user.employee_id},
        },
    }


@router.get("/validate")
async def validate(admin: User = Depends(require_admin)):
    return {"success": True, "data": {"admin": {"id": admin.id, "name": admin.name, "employee_id": admin.employee_id}}}
