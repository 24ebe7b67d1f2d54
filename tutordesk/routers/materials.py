from datetime import date
from typing import Iterator, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from tutordesk.core.config import settings
from tutordesk.core.deps import get_db, get_current_user, require_role_any, get_blob_store
from tutordesk.core.exceptions import ValidationError
from tutordesk.models.user import User
from tutordesk.routers.forms import as_upload, material_payload
from tutordesk.schemas.common import CourseName, Grade, Page, Program, ShareOut, ShareRequest
from tutordesk.schemas.material import MaterialFilter, MaterialOut, MaterialType, MaterialUpdate, OwnerScope
from tutordesk.services import material_service
from tutordesk.services.material_service import MaterialPage

router = APIRouter(prefix="/materials", tags=["materials"])

staff_only = [Depends(require_role_any(["teacher", "admin"]))]


def to_page(result: MaterialPage) -> Page[MaterialOut]:
    return Page[MaterialOut](
        items=[MaterialOut.model_validate(m) for m in result.items],
        page=result.page,
        size=result.size,
        total=result.total,
        pages=result.pages,
    )


def iter_blob(stream, chunk_size: int = 64 * 1024) -> Iterator[bytes]:
    try:
        while chunk := stream.read(chunk_size):
            yield chunk
    finally:
        stream.close()


@router.get("", response_model=Page[MaterialOut])
def list_materials(
    course: Optional[CourseName] = Query(None),
    grade: Optional[Grade] = Query(None),
    program: Optional[Program] = Query(None),
    type: Optional[MaterialType] = Query(None),
    folder_id: Optional[int] = Query(None),
    owner_scope: Optional[OwnerScope] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Teachers get their own materials by default, students everything they may read."""
    flt = MaterialFilter(
        course=course, grade=grade, program=program, type=type,
        folder_id=folder_id, owner_scope=owner_scope, search=search,
    )
    return to_page(material_service.list_materials(db, user, flt, page, size))


@router.post("", response_model=MaterialOut, status_code=201, dependencies=staff_only)
def create_material(
    title: str = Form(...),
    type: str = Form(...),
    description: Optional[str] = Form(None),
    url: Optional[str] = Form(None),
    folder_id: Optional[int] = Form(None),
    course: Optional[str] = Form(None),
    grade: Optional[int] = Form(None),
    program: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    is_public: bool = Form(False),
    due_date: Optional[date] = Form(None),
    priority: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    store=Depends(get_blob_store),
):
    """Upload a file or register a link. Link materials take a url and no file."""
    payload = material_payload(
        title=title, type=type, description=description, url=url, folder_id=folder_id,
        course=course, grade=grade, program=program, tags=tags, is_public=is_public,
        due_date=due_date, priority=priority,
    )
    return material_service.create_material(db, user, payload, store, as_upload(file))


@router.get("/{material_id}", response_model=MaterialOut)
def get_material(material_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return material_service.view_material(db, user, material_id)


@router.patch("/{material_id}", response_model=MaterialOut, dependencies=staff_only)
def update_material(material_id: int, payload: MaterialUpdate,
                    db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return material_service.update_material(db, user, material_id, payload)


@router.put("/{material_id}/file", response_model=MaterialOut, dependencies=staff_only)
def replace_file(
    material_id: int,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    store=Depends(get_blob_store),
):
    upload = as_upload(file)
    if upload is None:
        raise ValidationError.for_field("file", "File is required")
    return material_service.replace_file(db, user, material_id, upload, store)


@router.delete("/{material_id}", dependencies=staff_only)
def delete_material(material_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user),
                    store=Depends(get_blob_store)):
    warning = material_service.delete_material(db, user, material_id, store)
    return {"status": "deleted", "warnings": [warning] if warning else []}


@router.get("/{material_id}/download")
def download_material(material_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user),
                      store=Depends(get_blob_store)):
    download = material_service.download_material(db, user, material_id, store)
    return StreamingResponse(
        iter_blob(download.stream),
        media_type="application/octet-stream",
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(download.filename)}"},
    )


@router.post("/{material_id}/share", response_model=list[ShareOut], dependencies=staff_only)
def share_material(material_id: int, payload: ShareRequest,
                   db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return material_service.share_material(db, user, material_id, payload.user_ids, payload.permission)
