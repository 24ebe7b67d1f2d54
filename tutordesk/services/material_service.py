"""Material catalog: validation, filtered listing, counters and sharing."""
import logging
import math
import re
from dataclasses import dataclass
from typing import BinaryIO, Optional

from sqlalchemy import select, update, delete, func
from sqlalchemy.orm import Session

from tutordesk.core.exceptions import (
    AccessDeniedError, FileMissingError, InvalidFolderError, NoFileError,
    NotFoundError, ValidationError,
)
from tutordesk.core.files import discard_blob
from tutordesk.models.class_session import session_materials
from tutordesk.models.folder import Folder
from tutordesk.models.material import Material, MaterialShare
from tutordesk.models.user import User
from tutordesk.schemas.material import MaterialCreate, MaterialFilter, MaterialUpdate
from tutordesk.services import access_control
from tutordesk.services.sharing import upsert_grants

logger = logging.getLogger(__name__)

# title hits weigh more than tag hits, tag hits more than description hits
TITLE_WEIGHT = 3
TAG_WEIGHT = 2
DESCRIPTION_WEIGHT = 1


@dataclass
class FileUpload:
    filename: str
    data: BinaryIO | bytes


@dataclass
class MaterialPage:
    items: list[Material]
    page: int
    size: int
    total: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.size) if self.total else 0


@dataclass
class Download:
    material: Material
    filename: str
    stream: BinaryIO


def get_material(db: Session, material_id: int) -> Material:
    material = db.get(Material, material_id)
    if not material:
        raise NotFoundError("Material", material_id)
    return material


def get_owned_material(db: Session, owner: User, material_id: int) -> Material:
    material = get_material(db, material_id)
    if not access_control.is_owner(owner, material):
        raise AccessDeniedError(f"Material {material_id} belongs to another user")
    return material


def _increment(db: Session, material: Material, column: str) -> Material:
    """``column = column + 1`` in SQL, so parallel requests never lose an update."""
    db.execute(
        update(Material)
        .where(Material.id == material.id)
        .values({column: getattr(Material, column) + 1})
        .execution_options(synchronize_session=False)
    )
    db.commit()
    db.refresh(material)
    return material


def view_material(db: Session, principal: User, material_id: int) -> Material:
    """Authorized read; every successful call counts one view."""
    material = get_material(db, material_id)
    access_control.authorize(principal, material, "read")
    return _increment(db, material, "view_count")


def _owned_target_folder(db: Session, owner: User, folder_id: Optional[int]) -> Optional[Folder]:
    if folder_id is None:
        return None
    folder = db.get(Folder, folder_id)
    if not folder or folder.owner_id != owner.id:
        raise InvalidFolderError(f"Folder {folder_id} does not exist or is not yours")
    return folder


def _validate_source(material_type: str, url: Optional[str], has_file: bool) -> None:
    errors = []
    if material_type == "link":
        if not url:
            errors.append({"field": "url", "message": "URL is required for link type"})
        if has_file:
            errors.append({"field": "file", "message": "Link materials cannot carry a file"})
    else:
        if not has_file:
            errors.append({"field": "file", "message": "File is required for this material type"})
        if url:
            errors.append({"field": "url", "message": "Only link materials can have a URL"})
    if errors:
        raise ValidationError("Invalid material source", errors)


def create_material(db: Session, owner: User, payload: MaterialCreate, store,
                    upload: Optional[FileUpload] = None) -> Material:
    if not owner.is_staff:
        raise AccessDeniedError("Only teachers can create materials")

    _validate_source(payload.type, payload.url, upload is not None)
    folder = _owned_target_folder(db, owner, payload.folder_id)

    course = payload.course or (folder.course if folder else None)
    grade = payload.grade or (folder.grade if folder else None)
    program = payload.program or (folder.program if folder else None)
    missing = [name for name, value in (("course", course), ("grade", grade), ("program", program)) if value is None]
    if missing:
        raise ValidationError(
            "Missing audience fields",
            [{"field": name, "message": f"{name} is required without a folder"} for name in missing],
        )

    material = Material(
        title=payload.title,
        description=payload.description,
        type=payload.type,
        url=payload.url if payload.type == "link" else None,
        folder_id=folder.id if folder else None,
        owner_id=owner.id,
        course=course,
        grade=grade,
        program=program,
        tags=payload.tags,
        is_public=payload.is_public,
        due_date=payload.due_date,
        priority=payload.priority,
    )
    if upload is not None:
        blob = store.put(str(owner.id), upload.filename, upload.data)
        material.file_name = upload.filename
        material.file_path = blob.path
        material.file_size = blob.size

    db.add(material)
    try:
        db.commit()
    except Exception:
        db.rollback()
        discard_blob(store, material.file_path)
        raise
    db.refresh(material)
    logger.info("Created material %s (id=%s, type=%s, owner=%s)", material.title, material.id, material.type, owner.id)
    return material


def update_material(db: Session, owner: User, material_id: int, patch: MaterialUpdate) -> Material:
    material = get_owned_material(db, owner, material_id)
    data = patch.model_dump(exclude_unset=True)

    if "url" in data:
        if material.type != "link":
            raise ValidationError.for_field("url", "Only link materials can have a URL")
        if not data["url"]:
            raise ValidationError.for_field("url", "URL is required for link type")
    if "folder_id" in data:
        folder = _owned_target_folder(db, owner, data["folder_id"])
        data["folder_id"] = folder.id if folder else None
    for required in ("title", "priority", "is_public", "tags"):
        if required in data and data[required] is None:
            data.pop(required)

    for field_name, value in data.items():
        setattr(material, field_name, value)

    db.commit()
    db.refresh(material)
    return material


def replace_file(db: Session, owner: User, material_id: int, upload: FileUpload, store) -> Material:
    material = get_owned_material(db, owner, material_id)
    if material.type == "link":
        raise ValidationError.for_field("file", "Link materials cannot carry a file")

    blob = store.put(str(owner.id), upload.filename, upload.data)
    old_path = material.file_path
    material.file_name = upload.filename
    material.file_path = blob.path
    material.file_size = blob.size
    db.commit()
    db.refresh(material)
    discard_blob(store, old_path)
    return material


def delete_material(db: Session, owner: User, material_id: int, store) -> Optional[str]:
    """Deletes the record; returns a warning when the blob could not be removed."""
    material = get_owned_material(db, owner, material_id)
    file_path = material.file_path
    db.execute(delete(session_materials).where(session_materials.c.material_id == material.id))
    db.delete(material)
    db.commit()
    logger.info("Deleted material %s", material_id)
    return discard_blob(store, file_path)


def download_material(db: Session, principal: User, material_id: int, store) -> Download:
    material = get_material(db, material_id)
    access_control.authorize(principal, material, "read")

    if material.type == "link" or not material.file_path:
        raise NoFileError(f"Material {material_id} has no file to download")
    if not store.exists(material.file_path):
        logger.warning("Blob missing for material %s: %s", material_id, material.file_path)
        raise FileMissingError(f"File for material {material_id} not found on server")

    try:
        stream = store.get(material.file_path)
    except FileNotFoundError as exc:
        raise FileMissingError(f"File for material {material_id} not found on server") from exc
    _increment(db, material, "download_count")
    return Download(material=material, filename=material.file_name or material.file_path, stream=stream)


def share_material(db: Session, owner: User, material_id: int, user_ids: list[int], permission: str):
    material = get_owned_material(db, owner, material_id)
    return upsert_grants(db, MaterialShare, "material_id", material.id, user_ids, permission, owner.id)


def search_terms(text: str) -> list[str]:
    return [t for t in re.split(r"\W+", text.lower()) if t]


def relevance(material: Material, terms: list[str]) -> int:
    title = (material.title or "").lower()
    description = (material.description or "").lower()
    tags = [t.lower() for t in material.tags or []]
    score = 0
    for term in terms:
        score += TITLE_WEIGHT * title.count(term)
        score += TAG_WEIGHT * sum(1 for tag in tags if term in tag)
        score += DESCRIPTION_WEIGHT * description.count(term)
    return score


def _base_statement(principal: User, flt: MaterialFilter):
    scope = flt.owner_scope or ("mine" if principal.is_staff else "eligible")
    if scope == "mine":
        stmt = select(Material).where(access_control.owned_clause(Material, principal))
    else:
        stmt = select(Material).where(access_control.readable_clause(Material, principal))

    if flt.course:
        stmt = stmt.where(Material.course == flt.course)
    if flt.grade:
        stmt = stmt.where(Material.grade == flt.grade)
    if flt.program:
        stmt = stmt.where(Material.program == flt.program)
    if flt.type:
        stmt = stmt.where(Material.type == flt.type)
    if flt.folder_id:
        stmt = stmt.where(Material.folder_id == flt.folder_id)
    return stmt


def list_materials(db: Session, principal: User, flt: MaterialFilter, page: int = 1, size: int = 20) -> MaterialPage:
    """Filtered, paginated listing.

    Without a search text the newest materials come first. With one, only
    materials whose title, description or tags contain a search term are
    kept, ranked by relevance and then by recency.
    """
    if page < 1:
        raise ValidationError.for_field("page", "Page numbers start at 1")
    if size < 1:
        raise ValidationError.for_field("size", "Page size must be positive")

    stmt = _base_statement(principal, flt)
    terms = search_terms(flt.search) if flt.search else []

    if not terms:
        total = db.scalar(select(func.count()).select_from(stmt.subquery())) or 0
        items = db.scalars(
            stmt.order_by(Material.created_at.desc(), Material.id.desc())
            .offset((page - 1) * size)
            .limit(size)
        ).all()
        return MaterialPage(items=list(items), page=page, size=size, total=total)

    # tags are JSON and titles may hold non-ASCII text, neither of which
    # LIKE matches reliably across backends, so scoring happens here
    candidates = db.scalars(stmt).all()
    scored = [(relevance(m, terms), m) for m in candidates]
    scored = [pair for pair in scored if pair[0] > 0]
    scored.sort(key=lambda pair: (pair[0], pair[1].created_at, pair[1].id), reverse=True)
    start = (page - 1) * size
    return MaterialPage(
        items=[m for _, m in scored[start:start + size]],
        page=page,
        size=size,
        total=len(scored),
    )
