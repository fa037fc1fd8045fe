from datetime import datetime
from typing import Optional, List
from sqlmodel import SQLModel




class MemberCreate(SQLModel):
    team_id: Optional[str] = None
    # Either an exact e-mail or the id of a user picked from search results
    email: Optional[str] = None
    user_id: Optional[str] = None




class MemberRead(SQLModel):
    id: str
    team_id: str
    user_id: str
    added_by: str
    added_at: Optional[datetime]




class MemberView(SQLModel):
    id: str
    user_id: str
    email: str
    name: str
    team: str
    added_at: Optional[datetime]




class MemberList(SQLModel):
    members: List[MemberView]
