from datetime import datetime
from typing import Literal, Optional, List
from sqlmodel import SQLModel, Field
from ..config import NO_TEAM_LABEL


DocumentStatus = Literal["processing", "ready", "error"]


class DocumentView(SQLModel):
    id: str
    filename: str
    file_size: int = Field(ge=0)
    upload_date: datetime
    status: DocumentStatus
    uploaded_by: str
    team_id: Optional[str] = None
    team_name: str = NO_TEAM_LABEL




class DocumentList(SQLModel):
    documents: List[DocumentView]




class StatusUpdate(SQLModel):
    status: Literal["ready", "error"]




class UploadFailure(SQLModel):
    filename: str
    detail: str




class UploadBatchRead(SQLModel):
    uploaded: List[DocumentView] = []
    failed: List[UploadFailure] = []

    @property
    def partial(self) -> bool:
        return bool(self.failed)




class BucketRead(SQLModel):
    name: str
    public: bool
    allowed_mime_types: Optional[List[str]] = None
    file_size_limit: Optional[int] = None
    created: bool = False
