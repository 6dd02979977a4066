from __future__ import annotations

from fastapi import APIRouter, Depends, File, UploadFile

from ..logs import LogContext
from ..services.upload_svc import check_upload, import_grades
from .deps import API_PREFIX, require_admin, to_http

router = APIRouter()


@router.post(f"{API_PREFIX}/upload/grades")
def api_upload_grades(file: UploadFile | None = File(None), admin: dict = Depends(require_admin)):
    log = LogContext("UPLOAD_GRADES", user=admin["email"])
    try:
        content = file.file.read() if file is not None else b""
        check_upload(file.filename if file is not None else None, len(content))
        log.set_entity("FILE", file.filename)
        out = import_grades(content, log)
        log.write("OK")
        return out
    except Exception as e:
        log.write("ERROR", str(e))
        raise to_http(e)
