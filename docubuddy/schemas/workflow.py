from typing import Literal, Optional, List
from sqlmodel import SQLModel
from .teams import TeamRead


class TeamSelect(SQLModel):
    team_id: str




class WorkflowRead(SQLModel):
    step: Literal["select_team", "manage_team"]
    current_team_id: Optional[str] = None
    upload_enabled: bool
    teams: List[TeamRead] = []
