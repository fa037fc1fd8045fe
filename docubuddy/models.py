from datetime import datetime
from sqlalchemy import (UniqueConstraint, CheckConstraint,
                        Column, String, JSON, ForeignKey)
from sqlmodel import SQLModel, Field
from typing import Optional
from uuid import uuid4
from .utils.time import get_time_stamp


class AuthUser(SQLModel, table=True):
    __tablename__ = 'auth_users'
    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    email: str = Field(unique=True, index=True, max_length=255)
    hashed_password: str
    # Whatever the user supplied at signup (full_name, role)
    user_metadata: dict = Field(default_factory=dict, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=get_time_stamp)




class Profile(SQLModel, table=True):
    __tablename__ = 'profiles'
    id: str = Field(
        sa_column=Column(String, ForeignKey("auth_users.id", ondelete="CASCADE"), primary_key=True)
    )
    full_name: str = Field(default="", max_length=255)
    email: str = Field(unique=True, index=True, max_length=255)
    role: str = Field(
        default="team_member",
        sa_column=Column(String(50), CheckConstraint("role IN ('admin', 'team_member')"),
                         nullable=False)
    )
    created_at: datetime = Field(default_factory=get_time_stamp)
    updated_at: Optional[datetime] = Field(default=None)




class Team(SQLModel, table=True):
    __tablename__ = 'teams'
    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    name: str = Field(max_length=255, index=True, sa_column_kwargs={"nullable": False})
    created_by: str = Field(
        sa_column=Column(String, ForeignKey("profiles.id", ondelete="CASCADE"),
                         nullable=False, index=True)
    )
    created_at: datetime = Field(default_factory=get_time_stamp)
    updated_at: Optional[datetime] = Field(default=None)




class TeamMember(SQLModel, table=True):
    __tablename__ = 'team_members'
    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    team_id: str = Field(
        sa_column=Column(String, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    )
    user_id: str = Field(
        sa_column=Column(String, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    )
    added_by: str = Field(sa_column=Column(String, nullable=False))
    added_at: datetime = Field(default_factory=get_time_stamp)

    # Defining the UNIQUE constraint on (team_id, user_id)
    __table_args__ = (
        UniqueConstraint("team_id", "user_id", name="unique_team_user"),
    )




class Document(SQLModel, table=True):
    __tablename__ = 'documents'
    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    filename: str = Field(max_length=255, sa_column_kwargs={"nullable": False})
    file_size: int = Field(default=0)
    upload_date: datetime = Field(default_factory=get_time_stamp, index=True)
    status: str = Field(
        default="processing",
        sa_column=Column(String(20),
                         CheckConstraint("status IN ('processing', 'ready', 'error')"),
                         nullable=False)
    )
    uploaded_by: str = Field(sa_column=Column(String, nullable=False))
    # Weak link: a vanished team leaves the document in place, shown as "No Team"
    team_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String, ForeignKey("teams.id", ondelete="SET NULL"), nullable=True)
    )
    file_path: Optional[str] = Field(default=None)

    __table_args__ = (
        CheckConstraint("file_size >= 0", name="non_negative_file_size"),
    )
