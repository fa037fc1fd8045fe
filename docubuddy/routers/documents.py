from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlmodel import Session
from docubuddy.database import get_session
from docubuddy.errors import PartialBatchFailure
from docubuddy.schemas.document import DocumentList, StatusUpdate, UploadBatchRead
from docubuddy.services.context import SessionContext, get_session_context
from docubuddy.services.documents import delete_document, filter_documents, list_documents
from docubuddy.services.policies import ensure_document_owner
from docubuddy.services.storage import BucketStorage, UploadBlob, get_bucket_storage
from docubuddy.services.teams import list_teams
from docubuddy.services.upload import UploadPipeline, get_upload_pipeline
from typing import Annotated, List, Optional


router = APIRouter(prefix="/documents", tags=["Documents"])
db_session = Depends(get_session)
context_dependency = Annotated[SessionContext, Depends(get_session_context)]


def _blob_size(upload: UploadFile) -> int:
    if upload.size is not None:
        return upload.size
    upload.file.seek(0, 2)
    size = upload.file.tell()
    upload.file.seek(0)
    return size


@router.get("/", response_model=DocumentList)
async def get_documents(context: context_dependency,
                        q: str = Query(""),
                        team_id: Optional[str] = Query(None),
                        refresh: bool = Query(True),
                        session: Session = db_session):
    if refresh:
        # Team members are scoped by the teams they belong to right now
        list_teams(context, session)
        list_documents(context, session)
    return DocumentList(documents=filter_documents(context.documents, q, team_id))


@router.post("/upload", response_model=UploadBatchRead)
async def upload_documents(context: context_dependency,
                           files: List[UploadFile] = File(...),
                           team_id: Optional[str] = Form(None),
                           session: Session = db_session,
                           pipeline: UploadPipeline = Depends(get_upload_pipeline)):
    # Team names and membership scope come from the store, not the session cache
    list_teams(context, session)
    blobs = [UploadBlob(filename=upload.filename or "untitled",
                        content=upload.file,
                        size=_blob_size(upload),
                        content_type=upload.content_type)
             for upload in files]
    try:
        result = await pipeline.upload_files(context, session, blobs, team_id)
    finally:
        for upload in files:
            await upload.close()

    if result.partial:
        raise PartialBatchFailure(result, f"{len(result.failed)} of {len(blobs)} files failed to upload")
    return result


@router.delete("/delete/{document_id}", status_code=204)
async def remove_document(context: context_dependency, document_id: str,
                          session: Session = db_session,
                          storage: BucketStorage = Depends(get_bucket_storage)):
    delete_document(context, session, storage, document_id)
    return


@router.post("/{document_id}/status")
async def report_processing_status(context: context_dependency, document_id: str, update: StatusUpdate,
                                   session: Session = db_session,
                                   pipeline: UploadPipeline = Depends(get_upload_pipeline)):
    ensure_document_owner(session, document_id, context.actor)
    updated = pipeline.complete(session, document_id, update.status)
    return {"document_id": document_id, "status": update.status, "updated": updated}
