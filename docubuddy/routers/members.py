from fastapi import APIRouter, Depends
from sqlmodel import Session
from docubuddy.database import get_session
from docubuddy.schemas.member import MemberCreate, MemberRead
from docubuddy.services.context import SessionContext, get_session_context
from docubuddy.services.membership import add_member, add_member_by_email, remove_member
from docubuddy.services.policies import ensure_admin
from typing import Annotated


router = APIRouter(prefix="/members", tags=["Members"])
db_session = Depends(get_session)
context_dependency = Annotated[SessionContext, Depends(get_session_context)]


@router.post("/", response_model=MemberRead)
async def create_member(context: context_dependency, member: MemberCreate, session: Session = db_session):
    ensure_admin(context.actor, "add team members")
    # A user picked from search results is added directly, otherwise look up the e-mail
    if member.user_id and member.team_id:
        return add_member(context, session, member.team_id, member.user_id)
    return add_member_by_email(context, session, member.team_id, member.email)


@router.delete("/delete/{member_id}", status_code=204)
async def delete_member(context: context_dependency, member_id: str, session: Session = db_session):
    ensure_admin(context.actor, "remove team members")
    remove_member(context, session, member_id)
    return
