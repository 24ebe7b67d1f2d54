"""Authorization decisions for folders, materials and sessions.

Rules are evaluated in order and the first match wins:

1. a teacher/admin owning the entity may do anything with it;
2. anyone may read a public entity;
3. an explicit share grant allows the actions its level covers;
4. a student may read any entity matching their grade or program
   (or targeted at both programs), even without a grant;
5. everything else is denied.

Rule 4 makes non-public, non-shared content readable by every eligible
student. That mirrors the platform's existing behaviour and is kept on
purpose; see DESIGN.md.
"""
from typing import Literal

from sqlalchemy import or_, false, ColumnElement

from tutordesk.core.exceptions import AccessDeniedError
from tutordesk.models.class_session import ClassSession
from tutordesk.models.folder import Folder, FolderShare
from tutordesk.models.material import Material, MaterialShare
from tutordesk.models.user import User

Action = Literal["read", "write", "share", "delete"]

PERMISSION_LEVELS = {"read": 1, "write": 2, "admin": 3}
REQUIRED_LEVEL = {"read": "read", "write": "write", "delete": "write", "share": "admin"}


def owner_id_of(entity) -> int:
    if isinstance(entity, ClassSession):
        return entity.teacher_id
    return entity.owner_id


def is_owner(principal: User, entity) -> bool:
    return principal.is_staff and owner_id_of(entity) == principal.id


def is_eligible(student: User, grade, program) -> bool:
    return (
        grade == student.grade
        or program == student.program
        or program == "Both"
    )


def grant_level(principal: User, entity) -> int:
    for share in getattr(entity, "shares", None) or []:
        if share.user_id == principal.id:
            return PERMISSION_LEVELS.get(share.permission, 0)
    return 0


def can_access(principal: User, entity, action: Action) -> bool:
    if is_owner(principal, entity):
        return True
    if action == "read" and getattr(entity, "is_public", False):
        return True
    if grant_level(principal, entity) >= PERMISSION_LEVELS[REQUIRED_LEVEL[action]]:
        return True
    if (
        principal.is_student
        and action == "read"
        and is_eligible(principal, entity.grade, entity.program)
    ):
        return True
    return False


def authorize(principal: User, entity, action: Action) -> None:
    if not can_access(principal, entity, action):
        raise AccessDeniedError(
            f"User {principal.id} may not {action} {type(entity).__name__.lower()} {entity.id}"
        )


def eligibility_clause(model, student: User) -> ColumnElement[bool]:
    """SQL counterpart of rule 4 for ``model`` rows."""
    if student.grade is None and student.program is None:
        return model.program == "Both"
    return or_(
        model.grade == student.grade,
        model.program == student.program,
        model.program == "Both",
    )


def readable_clause(model, principal: User) -> ColumnElement[bool]:
    """SQL counterpart of ``can_access(principal, row, "read")`` for folders and materials."""
    if model is Material:
        shared = Material.shares.any(MaterialShare.user_id == principal.id)
    elif model is Folder:
        shared = Folder.shares.any(FolderShare.user_id == principal.id)
    else:
        raise TypeError(f"no read clause for {model!r}")

    clauses = [model.is_public.is_(True), shared]
    if principal.is_staff:
        clauses.append(model.owner_id == principal.id)
    if principal.is_student:
        clauses.append(eligibility_clause(model, principal))
    return or_(*clauses)


def owned_clause(model, principal: User) -> ColumnElement[bool]:
    if not principal.is_staff:
        return false()
    owner_col = model.teacher_id if model is ClassSession else model.owner_id
    return owner_col == principal.id
