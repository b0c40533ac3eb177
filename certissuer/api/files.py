"""Artifact upload and viewing endpoints."""
import logging

from fastapi import APIRouter, File, Request, UploadFile

from certissuer.api.models import UploadResponse, ViewResponse
from certissuer.audit import get_audit_logger
from certissuer.auth.backend import Principal
from certissuer.auth.roles import require_auth
from certissuer.core.exceptions import ValidationError
from certissuer.storage.artifacts import get_artifact_store

log = logging.getLogger(__name__)
router = APIRouter(tags=["files"])


@router.post("/upload", response_model=UploadResponse)
async def upload(
    request: Request,
    file: UploadFile | None = File(None),
    principal: Principal = require_auth,
) -> UploadResponse:
    """Store a file in the artifact store (PDF, PNG or JPEG, size-limited)."""
    from certissuer.config import ALLOWED_CERTIFICATE_TYPES, MAX_UPLOAD_BYTES

    if file is None or not file.filename:
        raise ValidationError.single("file", "No file uploaded")

    data = await file.read(MAX_UPLOAD_BYTES + 1)
    await file.close()

    errors = []
    if len(data) > MAX_UPLOAD_BYTES:
        errors.append({
            "field": "file",
            "message": f"File size must be <= {MAX_UPLOAD_BYTES // (1024 * 1024)} MB",
        })
    if file.content_type not in ALLOWED_CERTIFICATE_TYPES:
        errors.append({"field": "file", "message": "Only PDF, PNG, or JPEG files are allowed"})
    if errors:
        raise ValidationError(errors)

    artifact = await get_artifact_store().save(file.filename, file.content_type, data)

    get_audit_logger().log_access(
        action="artifact.upload",
        principal_id=principal.subject,
        resource=artifact.cid,
        details={"size": artifact.size},
        request=request,
    )
    return UploadResponse(
        cid=artifact.cid,
        url=artifact.url,
        name=artifact.name,
        size=artifact.size,
    )


@router.get("/view/{cid}", response_model=ViewResponse)
async def view(cid: str, principal: Principal = require_auth) -> ViewResponse:
    """Return a URL for a stored artifact."""
    from certissuer.config import ARTIFACT_LINK_TTL_SECONDS

    url = await get_artifact_store().access_link(cid)
    return ViewResponse(url=url, expires_in=ARTIFACT_LINK_TTL_SECONDS)
