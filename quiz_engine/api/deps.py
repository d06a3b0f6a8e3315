"""
Request-scoped dependencies shared by the routers

Authentication happens upstream; the auth layer forwards the caller's
identity in X-User-Id / X-User-Role headers.
"""
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header

from quiz_engine.exceptions import AuthenticationError, ForbiddenError
from quiz_engine.services.attempt_service import ELEVATED_ROLES, STUDENT_ROLE

VALID_ROLES = ELEVATED_ROLES | {STUDENT_ROLE}


@dataclass
class Requester:
    id: int
    role: str

    @property
    def is_student(self) -> bool:
        return self.role == STUDENT_ROLE

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def get_requester(
    x_user_id: Optional[int] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Requester:
    """Identity forwarded by the auth layer"""
    if x_user_id is None or not x_user_role:
        raise AuthenticationError("Not authenticated")

    role = x_user_role.strip().lower()
    if role not in VALID_ROLES:
        raise AuthenticationError(f"Unknown role: {x_user_role}")

    return Requester(id=x_user_id, role=role)


def require_student(requester: Requester = Depends(get_requester)) -> Requester:
    if not requester.is_student:
        raise ForbiddenError("Only students can take quizzes")
    return requester


def require_author(requester: Requester = Depends(get_requester)) -> Requester:
    if requester.role not in ELEVATED_ROLES:
        raise ForbiddenError("Only teachers and admins can author quizzes")
    return requester


def require_admin(requester: Requester = Depends(get_requester)) -> Requester:
    if not requester.is_admin:
        raise ForbiddenError("Admin access required")
    return requester


def ensure_can_view_student(requester: Requester, student_id: int) -> None:
    """Students see only their own records"""
    if requester.is_student and requester.id != student_id:
        raise ForbiddenError("You can only view your own quiz attempts")
