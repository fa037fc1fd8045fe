import logging
from typing import Iterable, Optional
from pydantic import ValidationError as RecordValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select, col
from ..config import NO_TEAM_LABEL
from ..errors import StorageError, TransientIOFailure
from ..models import Document, Team
from ..schemas.document import DocumentView
from ..utils.time import to_utc_aware
from .context import SessionContext
from .policies import ensure_admin, ensure_team_upload_access
from .storage import BucketStorage


logger = logging.getLogger(__name__)

ADMIN_LABEL = "Admin"
MEMBER_LABEL = "Team Member"

# Status only moves forward, out of processing
STATUS_TRANSITIONS = {"processing": {"ready", "error"}}


def to_view(document: Document, team_name: Optional[str], uploaded_by: str) -> Optional[DocumentView]:
    """Validate a stored record into a view; malformed records are dropped."""
    try:
        return DocumentView.model_validate({
            "id": document.id,
            "filename": document.filename,
            "file_size": document.file_size,
            "upload_date": to_utc_aware(document.upload_date),
            "status": document.status,
            "uploaded_by": uploaded_by,
            "team_id": document.team_id,
            "team_name": team_name or NO_TEAM_LABEL,
        })
    except RecordValidationError as e:
        logger.warning(f"Skipping malformed document record {document.id}: {e}")
        return None


def list_documents(context: SessionContext, session: Session,
                   scope_hint: Optional[Iterable[str]] = None) -> list[DocumentView]:
    """Load the documents the actor may see, most recent upload first.

    Admins see every document; team members only those of their teams, and
    nothing at all (without querying) when they belong to no team.
    ``scope_hint`` narrows the result to a set of team ids and never widens it.
    """
    actor = context.actor
    statement = select(Document, Team).join(Team, col(Document.team_id) == col(Team.id), isouter=True)

    if actor.is_admin:
        label = ADMIN_LABEL
        scope = set(scope_hint) if scope_hint is not None else None
    else:
        label = MEMBER_LABEL
        scope = set(context.user_team_ids)
        if scope_hint is not None:
            scope &= set(scope_hint)
        if not scope:
            logger.info(f"User {actor.id} is not in any teams, no documents to show")
            context.documents = []
            return []

    if scope is not None:
        statement = statement.where(col(Document.team_id).in_(scope))
    statement = statement.order_by(col(Document.upload_date).desc())

    try:
        rows = session.exec(statement).all()
    except SQLAlchemyError as e:
        logger.error(f"Error fetching documents for {actor.id}: {e}")
        context.documents = []
        return []

    documents = []
    for document, team in rows:
        view = to_view(document, team.name if team else None, label)
        if view is not None:
            documents.append(view)
    context.documents = documents
    return documents


def filter_documents(documents: Iterable[DocumentView], search_query: str = "",
                     team_id: Optional[str] = None) -> list[DocumentView]:
    query = (search_query or "").lower()
    return [
        document for document in documents
        if (query in document.filename.lower() or query in document.uploaded_by.lower())
        and (not team_id or document.team_id == team_id)
    ]


def create_document_entry(context: SessionContext, session: Session, filename: str,
                          file_size: int, file_path: str,
                          team_id: Optional[str] = None) -> tuple[Document, Optional[str]]:
    """Insert a processing entry; returns it with the name of the team it is shared with."""
    actor = context.actor
    team_name = ensure_team_upload_access(session, team_id, actor).name if team_id else None

    new_document = Document(filename=filename,
                            file_size=file_size,
                            status="processing",
                            uploaded_by=actor.id,
                            team_id=team_id or None,
                            file_path=file_path)
    try:
        session.add(new_document)
        session.commit()
        session.refresh(new_document)
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Database insert error for {filename}: {e}")
        raise TransientIOFailure(f"Failed to create document record: {e}")
    return new_document, team_name


def mark_status(session: Session, document_id: str, status: str) -> bool:
    """Apply a processing outcome to the stored record; backward moves are ignored."""
    try:
        document = session.get(Document, document_id)
    except SQLAlchemyError as e:
        raise TransientIOFailure(f"Failed to load document {document_id}: {e}")
    if document is None:
        logger.warning(f"Processing finished for unknown document {document_id}")
        return False
    if status not in STATUS_TRANSITIONS.get(document.status, set()):
        logger.warning(f"Ignoring status change {document.status} -> {status} for {document_id}")
        return False

    document.status = status
    try:
        session.add(document)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise TransientIOFailure(f"Failed to update document {document_id}: {e}")
    return True


def apply_local_status(context: SessionContext, document_id: str, status: str) -> bool:
    for view in context.documents:
        if view.id == document_id and status in STATUS_TRANSITIONS.get(view.status, set()):
            view.status = status
            return True
    return False


def delete_document(context: SessionContext, session: Session, storage: BucketStorage,
                    document_id: str) -> None:
    ensure_admin(context.actor, "delete documents")
    context.documents = [view for view in context.documents if view.id != document_id]

    try:
        document = session.get(Document, document_id)
    except SQLAlchemyError as e:
        logger.error(f"Error loading document {document_id}: {e}")
        raise TransientIOFailure(f"Failed to delete document: {e}")
    if document is None:
        return
    file_path = document.file_path
    try:
        session.delete(document)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Error deleting document {document_id}: {e}")
        raise TransientIOFailure(f"Failed to delete document: {e}")

    if file_path:
        try:
            storage.remove([file_path])
        except StorageError as e:
            logger.warning(f"Stored file {file_path} of document {document_id} was not removed: {e}")
