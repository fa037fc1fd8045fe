from datetime import datetime
from typing import Literal, Optional, List
from sqlmodel import SQLModel
from pydantic import EmailStr


class SignUpRequest(SQLModel):
    email: EmailStr
    password: str
    full_name: str
    role: Optional[Literal["admin", "team_member"]] = "team_member"




class UserRead(SQLModel):
    id: str
    email: str
    user_metadata: dict
    created_at: datetime




class UserPublic(SQLModel):
    id: str
    email: str
    full_name: str
    role: str




class UserList(SQLModel):
    users: List[UserPublic]




class SessionRead(SQLModel):
    id: str
    email: str
    role: Literal["admin", "team_member"]
    role_source: Literal["database", "metadata", "default"]
    device_id: Optional[str] = None
