from fastapi import APIRouter, Depends
from sqlmodel import Session
from docubuddy.database import get_session
from docubuddy.schemas.teams import TeamRead
from docubuddy.schemas.workflow import TeamSelect, WorkflowRead
from docubuddy.services.context import SessionContext, get_session_context
from docubuddy.services.membership import list_members
from docubuddy.services.policies import ensure_admin
from docubuddy.services.teams import list_teams
from docubuddy.services.workflow import WorkflowState
from typing import Annotated


router = APIRouter(prefix="/workflow", tags=["Workflow"])
db_session = Depends(get_session)
context_dependency = Annotated[SessionContext, Depends(get_session_context)]


def workflow_read(state: WorkflowState, context: SessionContext) -> WorkflowRead:
    return WorkflowRead(step=state.step,
                        current_team_id=state.current_team_id,
                        upload_enabled=state.upload_enabled,
                        teams=[TeamRead.model_validate(team) for team in context.teams])


@router.get("/", response_model=WorkflowRead)
async def get_workflow(context: context_dependency, session: Session = db_session):
    ensure_admin(context.actor, "manage teams")
    teams = list_teams(context, session)
    state = context.workflow.load(teams)
    if state.upload_enabled:
        list_members(context, session, state.current_team_id)
    return workflow_read(state, context)


@router.post("/select", response_model=WorkflowRead)
async def select_team(context: context_dependency, selection: TeamSelect, session: Session = db_session):
    ensure_admin(context.actor, "manage teams")
    if not context.teams:
        list_teams(context, session)
    state = context.workflow.select_team(selection.team_id, context.teams)
    if state.upload_enabled:
        list_members(context, session, state.current_team_id)
    return workflow_read(state, context)


@router.post("/change", response_model=WorkflowRead)
async def change_team(context: context_dependency):
    ensure_admin(context.actor, "manage teams")
    return workflow_read(context.workflow.change_team(), context)
