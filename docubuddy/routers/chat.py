import logging
from fastapi import APIRouter, Depends
from docubuddy.errors import TransientIOFailure
from docubuddy.schemas.chat import ChatQuestion, ChatReply
from docubuddy.services.context import SessionContext, get_session_context
from docubuddy.services.webhook import APOLOGY, QuestionAnsweringClient, get_qa_client
from typing import Annotated


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["Chat"])
context_dependency = Annotated[SessionContext, Depends(get_session_context)]


@router.post("/", response_model=ChatReply)
async def ask_question(context: context_dependency, question: ChatQuestion,
                       client: QuestionAnsweringClient = Depends(get_qa_client)):
    try:
        answer = client.ask(question.question)
    except TransientIOFailure as e:
        logger.error(f"Question from {context.user_id} went unanswered: {e.message}")
        return ChatReply(answer=APOLOGY, error=True)
    return ChatReply(answer=answer)
