"""Folder hierarchy: materialized paths, moves and cascading deletes."""
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import select, delete
from sqlalchemy.orm import Session

from tutordesk.core.exceptions import (
    AccessDeniedError, CyclicHierarchyError, DuplicateNameError,
    InvalidParentError, NotFoundError, ValidationError,
)
from tutordesk.core.files import discard_blob
from tutordesk.db.query import LazyQuery, order_by_key
from tutordesk.models.class_session import session_materials
from tutordesk.models.folder import Folder, FolderShare
from tutordesk.models.material import Material
from tutordesk.models.user import User
from tutordesk.schemas.folder import FolderCreate, FolderUpdate
from tutordesk.services import access_control
from tutordesk.services.sharing import upsert_grants

logger = logging.getLogger(__name__)

FOLDER_SORT_KEYS = ("name", "created_at", "updated_at")
MATERIAL_SORT_KEYS = ("title", "created_at", "updated_at", "view_count", "download_count")


@dataclass
class DeletionReport:
    folders_deleted: int = 0
    materials_deleted: int = 0
    warnings: list[str] = field(default_factory=list)


def compute_path(parent: Optional[Folder], name: str) -> str:
    return f"{parent.path}/{name}" if parent else name


def get_folder(db: Session, folder_id: int) -> Folder:
    folder = db.get(Folder, folder_id)
    if not folder:
        raise NotFoundError("Folder", folder_id)
    return folder


def get_readable_folder(db: Session, principal: User, folder_id: int) -> Folder:
    folder = get_folder(db, folder_id)
    access_control.authorize(principal, folder, "read")
    return folder


def get_owned_folder(db: Session, owner: User, folder_id: int) -> Folder:
    folder = get_folder(db, folder_id)
    if not access_control.is_owner(owner, folder):
        raise AccessDeniedError(f"Folder {folder_id} belongs to another user")
    return folder


def _sibling_exists(db: Session, owner_id: int, parent_id: Optional[int], name: str,
                    exclude_id: Optional[int] = None) -> bool:
    stmt = select(Folder.id).where(
        Folder.owner_id == owner_id,
        Folder.name == name,
        Folder.parent_id.is_(None) if parent_id is None else Folder.parent_id == parent_id,
    )
    if exclude_id is not None:
        stmt = stmt.where(Folder.id != exclude_id)
    return db.scalar(stmt.limit(1)) is not None


def _ancestor_ids(db: Session, folder: Folder) -> list[int]:
    """Ids from ``folder`` up to its root, ``folder`` included."""
    seen = []
    current = folder
    while current is not None:
        if current.id in seen:
            raise CyclicHierarchyError(f"Folder {current.id} is its own ancestor")
        seen.append(current.id)
        current = db.get(Folder, current.parent_id) if current.parent_id else None
    return seen


def _resolve_parent(db: Session, owner: User, parent_id: Optional[int]) -> Optional[Folder]:
    if parent_id is None:
        return None
    parent = db.get(Folder, parent_id)
    if not parent or parent.owner_id != owner.id:
        raise InvalidParentError(f"Parent folder {parent_id} does not exist or is not yours")
    return parent


def create_folder(db: Session, owner: User, payload: FolderCreate) -> Folder:
    if not owner.is_staff:
        raise AccessDeniedError("Only teachers can create folders")

    parent = _resolve_parent(db, owner, payload.parent_id)
    if parent is not None:
        _ancestor_ids(db, parent)

    if _sibling_exists(db, owner.id, payload.parent_id, payload.name):
        raise DuplicateNameError(f"Folder '{payload.name}' already exists in this location")

    folder = Folder(
        name=payload.name,
        description=payload.description,
        parent_id=payload.parent_id,
        owner_id=owner.id,
        course=payload.course,
        grade=payload.grade,
        program=payload.program,
        color=payload.color,
        icon=payload.icon,
        is_public=payload.is_public,
        tags=payload.tags,
        path=compute_path(parent, payload.name),
    )
    db.add(folder)
    db.commit()
    db.refresh(folder)
    logger.info("Created folder %s (id=%s, owner=%s)", folder.path, folder.id, owner.id)
    return folder


def repair_paths(db: Session, folder: Folder) -> int:
    """Recomputes the path of every descendant of ``folder``; returns how many changed.

    Breadth-first over an explicit queue so the depth of the tree never
    touches the call stack.
    """
    repaired = 0
    queue = deque([folder])
    while queue:
        node = queue.popleft()
        for child in db.scalars(select(Folder).where(Folder.parent_id == node.id)):
            new_path = compute_path(node, child.name)
            if child.path != new_path:
                child.path = new_path
                repaired += 1
            queue.append(child)
    return repaired


def rename_folder(db: Session, folder: Folder, new_name: str) -> Folder:
    if new_name == folder.name:
        db.commit()
        db.refresh(folder)
        return folder
    if _sibling_exists(db, folder.owner_id, folder.parent_id, new_name, exclude_id=folder.id):
        raise DuplicateNameError(f"Folder '{new_name}' already exists in this location")

    parent = db.get(Folder, folder.parent_id) if folder.parent_id else None
    old_path = folder.path
    folder.name = new_name
    folder.path = compute_path(parent, new_name)
    repaired = repair_paths(db, folder)
    db.commit()
    db.refresh(folder)
    logger.info("Renamed folder %s -> %s (%s descendant paths repaired)", old_path, folder.path, repaired)
    return folder


def move_folder(db: Session, folder: Folder, new_parent_id: Optional[int]) -> Folder:
    if new_parent_id == folder.parent_id:
        return folder
    owner = db.get(User, folder.owner_id)
    new_parent = _resolve_parent(db, owner, new_parent_id)
    if new_parent is not None and folder.id in _ancestor_ids(db, new_parent):
        raise CyclicHierarchyError(f"Folder {folder.id} cannot be moved into its own subtree")
    if _sibling_exists(db, folder.owner_id, new_parent_id, folder.name, exclude_id=folder.id):
        raise DuplicateNameError(f"Folder '{folder.name}' already exists in the target location")

    folder.parent_id = new_parent_id
    folder.path = compute_path(new_parent, folder.name)
    repaired = repair_paths(db, folder)
    db.commit()
    db.refresh(folder)
    logger.info("Moved folder %s to %s (%s descendant paths repaired)", folder.id, folder.path, repaired)
    return folder


def update_folder(db: Session, folder: Folder, patch: FolderUpdate) -> Folder:
    data = patch.model_dump(exclude_unset=True)
    new_name = data.pop("name", None)
    for field_name, value in data.items():
        if value is None and field_name in ("color", "icon", "is_public", "tags"):
            continue
        setattr(folder, field_name, value)
    if new_name and new_name != folder.name:
        return rename_folder(db, folder, new_name)
    db.commit()
    db.refresh(folder)
    return folder


def list_children(db: Session, principal: User, folder: Folder,
                  sort: Optional[str] = None) -> LazyQuery[Folder]:
    """Subfolders of ``folder`` that ``principal`` may read."""
    stmt = select(Folder).where(Folder.parent_id == folder.id)
    if not access_control.is_owner(principal, folder):
        stmt = stmt.where(access_control.readable_clause(Folder, principal))
    return LazyQuery(db, stmt.order_by(*order_by_key(Folder, sort, FOLDER_SORT_KEYS)))


def list_materials(db: Session, principal: User, folder: Folder,
                   sort: Optional[str] = None) -> LazyQuery[Material]:
    """Materials filed in ``folder``; readability is checked per material."""
    stmt = select(Material).where(Material.folder_id == folder.id)
    if not access_control.is_owner(principal, folder):
        stmt = stmt.where(access_control.readable_clause(Material, principal))
    return LazyQuery(db, stmt.order_by(*order_by_key(Material, sort, MATERIAL_SORT_KEYS)))


def list_folders(
    db: Session,
    principal: User,
    course: Optional[str] = None,
    grade: Optional[int] = None,
    program: Optional[str] = None,
    parent_id: Optional[int] = None,
    root_only: bool = False,
    sort: Optional[str] = None,
) -> list[Folder]:
    """Teachers see their own folders, students whatever they may read."""
    if principal.is_staff:
        stmt = select(Folder).where(access_control.owned_clause(Folder, principal))
    else:
        stmt = select(Folder).where(access_control.readable_clause(Folder, principal))

    if course:
        stmt = stmt.where(Folder.course == course)
    if grade:
        stmt = stmt.where(Folder.grade == grade)
    if program:
        stmt = stmt.where(Folder.program == program)
    if root_only:
        stmt = stmt.where(Folder.parent_id.is_(None))
    elif parent_id is not None:
        stmt = stmt.where(Folder.parent_id == parent_id)

    return db.scalars(stmt.order_by(*order_by_key(Folder, sort, FOLDER_SORT_KEYS))).all()


def share_folder(db: Session, folder: Folder, owner: User, user_ids: list[int], permission: str):
    if not access_control.is_owner(owner, folder):
        raise AccessDeniedError(f"Folder {folder.id} belongs to another user")
    return upsert_grants(db, FolderShare, "folder_id", folder.id, user_ids, permission, owner.id)


def _purge_folder(db: Session, folder_id: int, store, report: DeletionReport) -> None:
    """Deletes the materials of one folder and then the folder itself.

    Records go first and are committed; blobs are removed afterwards so that
    no storage I/O happens inside the transaction.
    """
    folder = db.get(Folder, folder_id)
    if folder is None:
        return
    materials = db.scalars(select(Material).where(Material.folder_id == folder_id)).all()
    blob_paths = [m.file_path for m in materials if m.file_path]
    if materials:
        db.execute(
            delete(session_materials).where(
                session_materials.c.material_id.in_([m.id for m in materials])
            )
        )
    for material in materials:
        db.delete(material)
    db.delete(folder)
    db.commit()

    report.folders_deleted += 1
    report.materials_deleted += len(materials)
    logger.debug("Deleted folder %s with %s materials", folder_id, len(materials))

    for path in blob_paths:
        warning = discard_blob(store, path)
        if warning:
            report.warnings.append(warning)


def delete_folder(db: Session, folder: Folder, store) -> DeletionReport:
    """Deletes ``folder``, every descendant folder and all their materials.

    Depth-first, children before parents, driven by an explicit stack.
    Each folder is committed on its own: an interrupted run leaves a smaller
    but consistent tree and can simply be repeated. Blob failures only add
    warnings to the report.
    """
    report = DeletionReport()
    root_id = folder.id
    stack: list[tuple[int, bool]] = [(root_id, False)]
    while stack:
        folder_id, expanded = stack.pop()
        if expanded:
            _purge_folder(db, folder_id, store, report)
            continue
        stack.append((folder_id, True))
        child_ids = db.scalars(select(Folder.id).where(Folder.parent_id == folder_id)).all()
        stack.extend((child_id, False) for child_id in child_ids)

    logger.info(
        "Deleted folder tree %s: %s folders, %s materials, %s warnings",
        root_id, report.folders_deleted, report.materials_deleted, len(report.warnings),
    )
    return report


TYPE_COLORS = {
    "pdf": "#e74c3c", "doc": "#3498db", "docx": "#3498db", "ppt": "#f39c12", "pptx": "#f39c12",
    "video": "#9b59b6", "image": "#1abc9c", "link": "#34495e", "quiz": "#e67e22", "assignment": "#27ae60",
}
TYPE_ICONS = {
    "pdf": "file-pdf", "doc": "file-word", "docx": "file-word", "ppt": "file-powerpoint",
    "pptx": "file-powerpoint", "video": "file-video", "image": "file-image", "link": "link",
    "quiz": "question-circle", "assignment": "tasks",
}


@dataclass
class OrganizeReport:
    folders_created: int = 0
    materials_organized: int = 0
    folders: list[Folder] = field(default_factory=list)


def type_folder_name(course: str, material_type: str) -> str:
    return f"{course} - {material_type.upper()} Materials"


def organize_by_type(db: Session, owner: User, course: str, grade: Optional[int] = None,
                     program: Optional[str] = None) -> OrganizeReport:
    """Files the owner's unfiled materials of ``course`` into one root folder per type.

    Existing type folders are reused; new ones take ``grade`` (default 12)
    and ``program`` (default Both). Everything happens in one transaction.
    """
    if not owner.is_staff:
        raise AccessDeniedError("Only teachers can organize materials")

    unfiled = db.scalars(
        select(Material)
        .where(Material.owner_id == owner.id, Material.course == course, Material.folder_id.is_(None))
        .order_by(Material.id)
    ).all()
    if not unfiled:
        raise ValidationError(f"No unfiled materials in {course}")

    by_type: dict[str, list[Material]] = {}
    for material in unfiled:
        by_type.setdefault(material.type, []).append(material)

    report = OrganizeReport()
    for material_type, materials in by_type.items():
        name = type_folder_name(course, material_type)
        folder = db.scalar(
            select(Folder).where(
                Folder.owner_id == owner.id,
                Folder.course == course,
                Folder.name == name,
                Folder.parent_id.is_(None),
            )
        )
        if folder is None:
            folder = Folder(
                name=name,
                description=f"Auto-generated folder for {material_type} materials in {course}",
                owner_id=owner.id,
                course=course,
                grade=grade or 12,
                program=program or "Both",
                color=TYPE_COLORS.get(material_type, "#2c5aa0"),
                icon=TYPE_ICONS.get(material_type, "file"),
                tags=[],
                path=compute_path(None, name),
            )
            db.add(folder)
            db.flush()
            report.folders_created += 1
        for material in materials:
            material.folder_id = folder.id
        report.materials_organized += len(materials)
        report.folders.append(folder)

    db.commit()
    for folder in report.folders:
        db.refresh(folder)
    logger.info(
        "Organized %s materials of %s into %s folders (%s new) for owner %s",
        report.materials_organized, course, len(report.folders), report.folders_created, owner.id,
    )
    return report
