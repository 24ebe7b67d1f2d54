from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.orm import Session

from tutordesk.core.deps import get_db, get_current_user, require_role_any, get_blob_store
from tutordesk.models.user import User
from tutordesk.routers.forms import as_upload, material_payload
from tutordesk.schemas.common import CourseName, Grade, Program, ShareOut, ShareRequest
from tutordesk.schemas.folder import FolderCreate, FolderDeleteOut, FolderMove, FolderOut, FolderUpdate
from tutordesk.schemas.material import MaterialOut
from tutordesk.services import folder_service, material_service

router = APIRouter(prefix="/folders", tags=["folders"])

staff_only = [Depends(require_role_any(["teacher", "admin"]))]


@router.get("", response_model=list[FolderOut])
def list_folders(
    course: Optional[CourseName] = Query(None),
    grade: Optional[Grade] = Query(None),
    program: Optional[Program] = Query(None),
    parent_id: Optional[int] = Query(None),
    root_only: bool = Query(False),
    sort: Optional[str] = Query(None, description="name, created_at or updated_at; prefix '-' for descending"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return folder_service.list_folders(db, user, course, grade, program, parent_id, root_only, sort)


@router.post("", response_model=FolderOut, status_code=201, dependencies=staff_only)
def create_folder(payload: FolderCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return folder_service.create_folder(db, user, payload)


@router.get("/{folder_id}", response_model=FolderOut)
def get_folder(folder_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return folder_service.get_readable_folder(db, user, folder_id)


@router.patch("/{folder_id}", response_model=FolderOut, dependencies=staff_only)
def update_folder(folder_id: int, payload: FolderUpdate,
                  db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    folder = folder_service.get_owned_folder(db, user, folder_id)
    return folder_service.update_folder(db, folder, payload)


@router.post("/{folder_id}/move", response_model=FolderOut, dependencies=staff_only)
def move_folder(folder_id: int, payload: FolderMove,
                db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    folder = folder_service.get_owned_folder(db, user, folder_id)
    return folder_service.move_folder(db, folder, payload.parent_id)


@router.delete("/{folder_id}", response_model=FolderDeleteOut, dependencies=staff_only)
def delete_folder(folder_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user),
                  store=Depends(get_blob_store)):
    """Deletes the folder with all subfolders and materials."""
    folder = folder_service.get_owned_folder(db, user, folder_id)
    report = folder_service.delete_folder(db, folder, store)
    return FolderDeleteOut(
        folders_deleted=report.folders_deleted,
        materials_deleted=report.materials_deleted,
        warnings=report.warnings,
    )


@router.get("/{folder_id}/children", response_model=list[FolderOut])
def list_children(folder_id: int, sort: Optional[str] = Query(None),
                  db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    folder = folder_service.get_readable_folder(db, user, folder_id)
    return folder_service.list_children(db, user, folder, sort).all()


@router.get("/{folder_id}/materials", response_model=list[MaterialOut])
def list_folder_materials(folder_id: int, sort: Optional[str] = Query(None),
                          db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    folder = folder_service.get_readable_folder(db, user, folder_id)
    return folder_service.list_materials(db, user, folder, sort).all()


@router.post("/{folder_id}/materials", response_model=MaterialOut, status_code=201, dependencies=staff_only)
def upload_into_folder(
    folder_id: int,
    title: str = Form(...),
    type: str = Form(...),
    description: Optional[str] = Form(None),
    url: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    is_public: bool = Form(False),
    due_date: Optional[date] = Form(None),
    priority: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    store=Depends(get_blob_store),
):
    """Adds a material to the folder; course, grade and program come from the folder."""
    payload = material_payload(
        title=title, type=type, description=description, url=url, tags=tags,
        is_public=is_public, due_date=due_date, priority=priority, folder_id=folder_id,
    )
    return material_service.create_material(db, user, payload, store, as_upload(file))


@router.post("/{folder_id}/share", response_model=list[ShareOut], dependencies=staff_only)
def share_folder(folder_id: int, payload: ShareRequest,
                 db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    folder = folder_service.get_folder(db, folder_id)
    return folder_service.share_folder(db, folder, user, payload.user_ids, payload.permission)
