import os
from dotenv import load_dotenv


# Load environment variables
load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./docubuddy.db")
DATABASE_ECHO = os.getenv("DATABASE_ECHO", "false").lower() == "true"

SECRET_KEY = os.getenv("SECRET_KEY", "docubuddy-dev-secret")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = float(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(7 * 24 * 60)))

ROLES = ("admin", "team_member")
DEFAULT_ROLE = "team_member"

# Object storage
STORAGE_ROOT = os.getenv("STORAGE_ROOT", "uploads/storage")
DOCUMENTS_BUCKET = os.getenv("DOCUMENTS_BUCKET", "documents")
DOCUMENT_MIME_TYPES = [
    "application/pdf",
    "text/plain",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
]
DOCUMENT_SIZE_LIMIT = 52428800  # 50MB

# Per-device preferences (the persisted workflow selection lives here)
PREFERENCES_ROOT = os.getenv("PREFERENCES_ROOT", "uploads/preferences")
DEFAULT_DEVICE = "default"
PREFERENCE_CACHE_SIZE = int(os.getenv("PREFERENCE_CACHE_SIZE", "256"))
SELECTION_KEY = "currentWorkingTeam"

# Document processing
PROCESSING_COMPLETION = os.getenv("PROCESSING_COMPLETION", "timer")
PROCESSING_DELAY_SECONDS = float(os.getenv("PROCESSING_DELAY_SECONDS", "3"))
PROGRESS_CLEAR_SECONDS = float(os.getenv("PROGRESS_CLEAR_SECONDS", "1"))
STALLED_PROCESSING_MINUTES = int(os.getenv("STALLED_PROCESSING_MINUTES", "60"))

NO_TEAM_LABEL = "No Team"

# Question answering webhook
QA_WEBHOOK_URL = os.getenv("QA_WEBHOOK_URL", "")
QA_WEBHOOK_TIMEOUT = float(os.getenv("QA_WEBHOOK_TIMEOUT", "30"))

RUN_SCHEDULER = os.getenv("RUN_SCHEDULER", "true").lower() == "true"
