from fastapi import APIRouter, Depends
from docubuddy.schemas.document import BucketRead
from docubuddy.services.context import SessionContext, get_session_context
from docubuddy.services.policies import ensure_admin
from docubuddy.services.storage import BucketStorage, ensure_documents_bucket, get_bucket_storage
from typing import Annotated


router = APIRouter(prefix="/storage", tags=["Storage"])
context_dependency = Annotated[SessionContext, Depends(get_session_context)]


@router.post("/bucket", response_model=BucketRead)
async def create_storage_bucket(context: context_dependency,
                                storage: BucketStorage = Depends(get_bucket_storage)):
    ensure_admin(context.actor, "create storage buckets")
    bucket, created = ensure_documents_bucket(storage)
    return BucketRead(name=bucket.name,
                      public=bucket.public,
                      allowed_mime_types=bucket.allowed_mime_types,
                      file_size_limit=bucket.file_size_limit,
                      created=created)
