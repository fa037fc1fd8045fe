from datetime import datetime
from typing import Optional, List
from sqlmodel import SQLModel


class TeamCreate(SQLModel):
    name: str



class TeamRead(TeamCreate):
    id: str
    created_by: str
    created_at: Optional[datetime]




class TeamList(SQLModel):
    teams: List[TeamRead]
