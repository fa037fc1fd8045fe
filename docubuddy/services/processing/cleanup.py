import logging
from datetime import timedelta
from typing import Callable, Optional
from sqlmodel import select, Session
from docubuddy.config import STALLED_PROCESSING_MINUTES
from docubuddy.database import engine
from docubuddy.models import Document
from docubuddy.utils.time import get_time_stamp


logger = logging.getLogger(__name__)


def fail_stalled_documents(minutes: int = STALLED_PROCESSING_MINUTES, bind=None,
                           on_failed: Optional[Callable[[list[str]], None]] = None) -> int:
    """Move documents stuck in processing for too long to error.

    ``on_failed`` receives the ids of the documents that were moved.
    """
    with Session(bind or engine) as session:
        cutoff = get_time_stamp() - timedelta(minutes=minutes)

        statement = select(Document).where(
            Document.status == "processing",
            Document.upload_date < cutoff
        )
        stalled = session.exec(statement).all()

        for document in stalled:
            document.status = "error"
            session.add(document)

        session.commit()
        failed_ids = [document.id for document in stalled]
    if failed_ids:
        logger.warning(f"Marked {len(failed_ids)} stalled document(s) as error")
        if on_failed is not None:
            on_failed(failed_ids)
    return len(failed_ids)
