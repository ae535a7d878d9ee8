from typing import Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError

from app.auth.schemas import CurrentUser
from app.auth.security import decode_access_token


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


async def get_current_user(token: str = Depends(oauth2_scheme)) -> CurrentUser:
    """Resolve the authenticated caller and their permissions from the access token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = decode_access_token(token)
    except JWTError:
        raise credentials_exception

    user_id_str = payload.get("user_id") or payload.get("sub")
    role_name = payload.get("role")
    if not user_id_str or not role_name:
        raise credentials_exception

    try:
        user_id = UUID(user_id_str)
    except ValueError:
        raise credentials_exception

    student_id: Optional[UUID] = None
    student_id_str = payload.get("student_id")
    if student_id_str:
        try:
            student_id = UUID(student_id_str)
        except ValueError:
            raise credentials_exception

    return CurrentUser(
        id=user_id,
        role=role_name,
        permissions=payload.get("permissions") or {},
        student_id=student_id,
    )


async def require_student(
    current_user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """Dependency: caller must be a student (token carries student_id)."""
    if current_user.student_id is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only students can perform this action",
        )
    return current_user
