from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.orm import Session

from projecthub.db.session import get_db
from projecthub.routers.common import get_attachment_store
from projecthub.schemas.work import AttachmentOut
from projecthub.security.context import AccessRequirement, Actor
from projecthub.security.dependencies import get_current_actor
from projecthub.security.policy import ensure_authorized
from projecthub.security.roles import Perm
from projecthub.storage.attachments import AttachmentStore, IncomingFile, OwnerKind

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/universal", tags=["universal"])

# The route table cannot see `type`, so the owner-specific edit permission is checked here.
_EDIT_PERMISSION = {
    OwnerKind.PROJECT: Perm.EDIT_PROJECT,
    OwnerKind.ISSUE: Perm.EDIT_ISSUE,
    OwnerKind.ORDER: Perm.EDIT_ORDER,
}


@router.put("/upload/{file_id}", response_model=AttachmentOut)
def replace_file(
    file_id: int,
    kind: OwnerKind = Query(alias="type"),
    file: UploadFile = File(...),
    actor: Actor = Depends(get_current_actor),
    store: AttachmentStore = Depends(get_attachment_store),
    db: Session = Depends(get_db),
) -> AttachmentOut:
    """Replace the file behind an existing project, issue or order attachment."""
    ensure_authorized(AccessRequirement(permissions=frozenset({_EDIT_PERMISSION[kind]})), actor)

    with store.batch(db) as batch:
        row = batch.replace(kind, file_id, IncomingFile(filename=file.filename or "", stream=file.file))
    db.refresh(row)
    logger.info("Attachment %s (%s) replaced by user_id=%s", file_id, kind.value, actor.user_id)
    return AttachmentOut.model_validate(row)
