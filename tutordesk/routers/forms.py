"""Shared glue for multipart material forms."""
from typing import Optional

import pydantic
from fastapi import UploadFile

from tutordesk.core.exceptions import ValidationError
from tutordesk.schemas.material import MaterialCreate
from tutordesk.services.material_service import FileUpload


def material_payload(**fields) -> MaterialCreate:
    """Builds a MaterialCreate from form fields, reporting problems per field."""
    data = {k: v for k, v in fields.items() if v is not None and v != ""}
    try:
        return MaterialCreate(**data)
    except pydantic.ValidationError as exc:
        errors = [
            {"field": ".".join(str(p) for p in err["loc"]) or "body", "message": err["msg"]}
            for err in exc.errors()
        ]
        raise ValidationError("Invalid material", errors) from exc


def as_upload(file: Optional[UploadFile]) -> Optional[FileUpload]:
    if file is None or not file.filename:
        return None
    return FileUpload(filename=file.filename, data=file.file)
