from fastapi import APIRouter, Depends
from sqlmodel import Session
from docubuddy.database import get_session
from docubuddy.schemas.member import MemberList
from docubuddy.schemas.teams import TeamCreate, TeamList, TeamRead
from docubuddy.services.context import SessionContext, get_session_context
from docubuddy.services.membership import list_members
from docubuddy.services.policies import ensure_admin, ensure_team_owner
from docubuddy.services.teams import create_team, list_teams
from typing import Annotated


router = APIRouter(prefix="/team", tags=["Team"])
context_dependency = Annotated[SessionContext, Depends(get_session_context)]


@router.get("/", response_model=TeamList)
async def get_teams(context: context_dependency, session: Session = Depends(get_session)):
    teams = list_teams(context, session)
    return TeamList(teams=[TeamRead.model_validate(team) for team in teams])


@router.post("/create", response_model=TeamRead)
async def create_new_team(context: context_dependency, team: TeamCreate,
                          session: Session = Depends(get_session)):
    return create_team(context, session, team.name)


@router.get("/members/{team_id}", response_model=MemberList)
async def get_team_members(context: context_dependency, team_id: str,
                           session: Session = Depends(get_session)):
    ensure_admin(context.actor, "view team members")
    ensure_team_owner(session, team_id, context.actor)
    return MemberList(members=list_members(context, session, team_id))
