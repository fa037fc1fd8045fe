"""Row-level rules the store enforces on every write."""
import logging
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select, and_
from ..errors import NotFound, PermissionDenied, TransientIOFailure
from ..models import Document, Team, TeamMember
from .identity import Actor


logger = logging.getLogger(__name__)


def ensure_admin(actor: Actor, action: str) -> None:
    if not actor.is_admin:
        raise PermissionDenied(f"Only admins can {action}")


def _get_team(session: Session, team_id: str) -> Team:
    try:
        team = session.get(Team, team_id)
    except SQLAlchemyError as e:
        logger.error(f"Error loading team {team_id}: {e}")
        raise TransientIOFailure(f"Failed to load team: {e}")
    if not team:
        raise NotFound("Team not found")
    return team


def ensure_team_owner(session: Session, team_id: str, actor: Actor) -> Team:
    team = _get_team(session, team_id)
    if team.created_by != actor.id:
        raise PermissionDenied("Access denied, you do not own this team.")
    return team


def ensure_team_upload_access(session: Session, team_id: str, actor: Actor) -> Team:
    if actor.is_admin:
        return ensure_team_owner(session, team_id, actor)

    team = _get_team(session, team_id)
    statement = select(TeamMember).where(and_(
        TeamMember.user_id == actor.id,
        TeamMember.team_id == team_id
    ))
    try:
        membership = session.exec(statement).first()
    except SQLAlchemyError as e:
        logger.error(f"Error checking membership of {actor.id} in {team_id}: {e}")
        raise TransientIOFailure(f"Failed to check team membership: {e}")
    if not membership:
        raise PermissionDenied("Access denied, user is not a member of the team.")
    return team


def ensure_document_owner(session: Session, document_id: str, actor: Actor) -> Document:
    """Admin owning the document's team, or its uploader when it has no team."""
    ensure_admin(actor, "report processing results")
    try:
        document = session.get(Document, document_id)
    except SQLAlchemyError as e:
        logger.error(f"Error loading document {document_id}: {e}")
        raise TransientIOFailure(f"Failed to load document: {e}")
    if document is None:
        raise NotFound("Document not found")

    if document.team_id:
        ensure_team_owner(session, document.team_id, actor)
    elif document.uploaded_by != actor.id:
        raise PermissionDenied("Access denied, you did not upload this document.")
    return document
