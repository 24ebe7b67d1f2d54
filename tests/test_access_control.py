import pytest

from tutordesk.core.exceptions import AccessDeniedError
from tutordesk.models.class_session import ClassSession
from tutordesk.models.folder import Folder, FolderShare
from tutordesk.models.material import Material, MaterialShare
from tutordesk.models.user import User
from tutordesk.services.access_control import authorize, can_access

ACTIONS = ("read", "write", "share", "delete")


def user(id, role, grade=None, program=None):
    return User(id=id, name=f"u{id}", email=f"u{id}@example.com", role=role, grade=grade, program=program)


def material(owner_id=1, grade=11, program="ACT", is_public=False, shares=()):
    m = Material(id=10, title="m", type="pdf", owner_id=owner_id, course="Evolution",
                 grade=grade, program=program, is_public=is_public)
    m.shares = [MaterialShare(user_id=uid, permission=perm) for uid, perm in shares]
    return m


def test_owner_may_do_everything():
    owner = user(1, "teacher")
    for entity in (material(), material(is_public=True), material(shares=[(5, "read")])):
        for action in ACTIONS:
            assert can_access(owner, entity, action)


def test_admin_owner_may_do_everything():
    owner = user(1, "admin")
    assert all(can_access(owner, material(), action) for action in ACTIONS)


def test_other_teacher_gets_read_on_public_only():
    other = user(2, "teacher", grade=11, program="ACT")
    assert not can_access(other, material(), "read")
    assert can_access(other, material(is_public=True), "read")
    assert not can_access(other, material(is_public=True), "write")


def test_eligibility_scenario():
    student = user(3, "student", grade=12, program="EST")
    assert not can_access(student, material(grade=11, program="ACT"), "read")
    assert can_access(student, material(grade=11, program="Both"), "read")
    assert can_access(student, material(grade=12, program="ACT"), "read")
    assert can_access(student, material(grade=9, program="EST"), "read")


def test_eligibility_never_grants_writes():
    student = user(3, "student", grade=11, program="ACT")
    for action in ("write", "share", "delete"):
        assert not can_access(student, material(), action)


@pytest.mark.parametrize(
    "permission, allowed",
    [
        ("read", {"read"}),
        ("write", {"read", "write", "delete"}),
        ("admin", {"read", "write", "delete", "share"}),
    ],
)
def test_grant_levels(permission, allowed):
    grantee = user(4, "teacher")
    entity = material(shares=[(4, permission)])
    assert {a for a in ACTIONS if can_access(grantee, entity, a)} == allowed


def test_folder_grants():
    grantee = user(4, "student", grade=9, program="ACT")
    folder = Folder(id=1, name="f", owner_id=1, course="Evolution", grade=12, program="EST", is_public=False)
    assert not can_access(grantee, folder, "read")
    folder.shares = [FolderShare(user_id=4, permission="read")]
    assert can_access(grantee, folder, "read")


def test_sessions_use_teacher_and_eligibility():
    session = ClassSession(id=1, title="s", teacher_id=1, course="Evolution", grade=10, program="ACT")
    assert can_access(user(1, "teacher"), session, "delete")
    assert not can_access(user(2, "teacher"), session, "read")
    assert can_access(user(3, "student", grade=10, program="EST"), session, "read")
    assert not can_access(user(3, "student", grade=12, program="EST"), session, "read")


def test_student_owner_id_is_not_ownership():
    # only staff can own; a student id matching owner_id earns nothing
    student = user(1, "student", grade=9, program="EST")
    assert not can_access(student, material(owner_id=1), "write")


def test_authorize_raises():
    with pytest.raises(AccessDeniedError):
        authorize(user(2, "teacher"), material(), "read")
    authorize(user(1, "teacher"), material(), "delete")
