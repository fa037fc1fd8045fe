from sqlmodel import SQLModel


class ChatQuestion(SQLModel):
    question: str




class ChatReply(SQLModel):
    answer: str
    error: bool = False
