"""Upload pipeline: store each file, then catalog it, then wait for processing.

Files of one batch are handled one after another and fail independently.
Per file: store the blob (progress 50), create the catalog entry (progress
100, removing the stored blob again if this step fails), put the new
document at the head of the session's view and watch for the processing
outcome. The progress entry is cleared shortly after the file finishes.
"""
import asyncio
import logging
import os
from functools import partial
from typing import Awaitable, Callable, Iterable, Optional
from uuid import uuid4
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session
from ..config import PROGRESS_CLEAR_SECONDS
from ..database import engine
from ..errors import DocuBuddyError, NotAuthenticated, StorageError, TransientIOFailure, ValidationError
from ..schemas.document import DocumentView, UploadBatchRead, UploadFailure
from ..utils.time import epoch_millis
from .completion import CallbackCompletionSource, ProcessingCompletionSource, build_completion_source
from .context import SessionContext
from .documents import apply_local_status, create_document_entry, mark_status, to_view
from .manager import ws_connection_manager
from .storage import BucketStorage, UploadBlob, bucket_storage


logger = logging.getLogger(__name__)

Notifier = Callable[[str, dict], Awaitable[None]]
Defer = Callable[[float, Callable[[], None]], None]


def storage_key(user_id: str, filename: str) -> str:
    return f"{user_id}/{epoch_millis()}_{os.path.basename(filename)}"


def call_later(delay: float, callback: Callable[[], None]) -> None:
    asyncio.get_running_loop().call_later(delay, callback)


class UploadPipeline:
    def __init__(self, storage: BucketStorage,
                 completion_source: ProcessingCompletionSource,
                 session_factory: Optional[Callable[[], Session]] = None,
                 notifier: Optional[Notifier] = None,
                 defer: Defer = call_later,
                 clear_delay: float = PROGRESS_CLEAR_SECONDS):
        self.storage = storage
        self.completion_source = completion_source
        self.session_factory = session_factory or (lambda: Session(engine))
        self.notifier = notifier
        self.defer = defer
        self.clear_delay = clear_delay
        self._tasks: set[asyncio.Task] = set()

    async def upload_files(self, context: Optional[SessionContext], session: Session,
                           files: Iterable[UploadBlob], team_id: Optional[str] = None) -> UploadBatchRead:
        if context is None or context.closed or context.actor is None:
            raise NotAuthenticated("Please log in to upload documents")
        if context.actor.is_admin and not team_id:
            raise ValidationError("Please select a team to share this document with")

        result = UploadBatchRead()
        for blob in files:
            token = uuid4().hex
            await self._report(context, token, blob.filename, 0)
            try:
                view = await self._upload_one(context, session, blob, team_id, token)
            except DocuBuddyError as e:
                result.failed.append(self._failure(blob, e.message))
            except SQLAlchemyError as e:
                result.failed.append(self._failure(blob, f"Data store unavailable: {e}"))
            else:
                result.uploaded.append(view)
                logger.info(f"Document {blob.filename} uploaded to team {view.team_name}")
            finally:
                self._schedule_clear(context, token)
        return result

    async def _upload_one(self, context: SessionContext, session: Session, blob: UploadBlob,
                          team_id: Optional[str], token: str) -> DocumentView:
        actor = context.actor
        key = storage_key(actor.id, blob.filename)
        stored = self.storage.upload(key, blob)
        await self._report(context, token, blob.filename, 50)

        try:
            document, team_name = create_document_entry(context, session, blob.filename, blob.size,
                                                        stored["path"], team_id)
        except Exception:
            # No stored blob outlives a failed catalog insert
            self._compensate(key)
            raise
        await self._report(context, token, blob.filename, 100)

        # Built from the stored record so the view matches the catalog
        view = to_view(document, team_name or context.team_name(document.team_id), actor.email)
        if view is None:
            raise TransientIOFailure("No document data returned")
        context.documents.insert(0, view)
        self.completion_source.watch(document.id, partial(self._on_processed, context))
        return view

    @staticmethod
    def _failure(blob: UploadBlob, message: str) -> UploadFailure:
        logger.error(f"Error uploading document {blob.filename}: {message}")
        return UploadFailure(filename=blob.filename,
                             detail=f"Failed to upload {blob.filename}: {message}")

    def _compensate(self, key: str) -> None:
        try:
            self.storage.remove([key])
        except StorageError as e:
            logger.warning(f"Compensating delete of {key} failed: {e.message}")

    def _on_processed(self, context: SessionContext, document_id: str, status: str) -> None:
        try:
            with self.session_factory() as session:
                mark_status(session, document_id, status)
        except DocuBuddyError as e:
            logger.error(f"Could not record processing outcome of {document_id}: {e.message}")

        if context.closed:
            logger.info(f"Discarding processing outcome of {document_id} for closed session {context.sid}")
            return
        if apply_local_status(context, document_id, status):
            self._dispatch(context.user_id, {"type": "document_status",
                                             "document_id": document_id,
                                             "status": status})

    def complete(self, session: Session, document_id: str, status: str) -> bool:
        """Deliver an outcome reported by the processing backend."""
        source = self.completion_source
        if isinstance(source, CallbackCompletionSource) and source.is_pending(document_id):
            return source.complete(document_id, status)
        return mark_status(session, document_id, status)

    async def _report(self, context: SessionContext, token: str, filename: str, progress: int) -> None:
        if context.closed:
            return
        context.upload_progress[token] = {"filename": filename, "progress": progress}
        if self.notifier is not None:
            await self.notifier(context.user_id, {"type": "upload_progress",
                                                  "token": token,
                                                  "filename": filename,
                                                  "progress": progress})

    def _schedule_clear(self, context: SessionContext, token: str) -> None:
        def clear():
            if context.closed:
                return
            entry = context.upload_progress.pop(token, None)
            if entry is not None:
                self._dispatch(context.user_id, {"type": "upload_progress",
                                                 "token": token,
                                                 "filename": entry["filename"],
                                                 "progress": None})

        self.defer(self.clear_delay, clear)

    def _dispatch(self, user_id: str, message: dict) -> None:
        if self.notifier is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No event loop to deliver {message['type']} to {user_id}")
            return
        task = loop.create_task(self.notifier(user_id, message))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)


completion_source = build_completion_source()
upload_pipeline = UploadPipeline(storage=bucket_storage,
                                 completion_source=completion_source,
                                 notifier=ws_connection_manager.send_to_user)


def get_upload_pipeline() -> UploadPipeline:
    return upload_pipeline
