from docubuddy.database import get_session
from docubuddy.schemas.user import SessionRead, UserList, UserPublic
from docubuddy.services.context import SessionContext, get_session_context
from docubuddy.services.membership import search_users
from docubuddy.services.policies import ensure_admin
from fastapi import APIRouter, Depends, Query
from sqlmodel import Session
from typing import Annotated


router = APIRouter(prefix="/users", tags=["Users"])
context_dependency = Annotated[SessionContext, Depends(get_session_context)]


@router.get("/me", response_model=SessionRead)
async def get_user(context: context_dependency):
    return SessionRead(id=context.actor.id,
                       email=context.actor.email,
                       role=context.role.role,
                       role_source=context.role.source,
                       device_id=context.device_id)


@router.get("/search", response_model=UserList)
async def find_users(context: context_dependency,
                     q: str = Query(""),
                     session: Session = Depends(get_session)):
    ensure_admin(context.actor, "search users")
    return UserList(users=[UserPublic.model_validate(profile) for profile in search_users(session, q)])
