import json
import logging
import requests
from ..config import QA_WEBHOOK_URL, QA_WEBHOOK_TIMEOUT
from ..errors import TransientIOFailure, ValidationError


logger = logging.getLogger(__name__)

APOLOGY = "Sorry, there was an error processing your request. Please try again."
ANSWER_FIELDS = ("response", "message", "answer")


def extract_answer(raw: str) -> str:
    """Pull the answer out of a webhook body.

    JSON objects answer through their ``response``, ``message`` or ``answer``
    field (first non-empty one wins) and are otherwise echoed as JSON; a JSON
    string is the answer itself; anything that is not JSON is taken verbatim.
    """
    try:
        parsed = json.loads(raw)
    except ValueError:
        return raw

    if isinstance(parsed, str):
        return parsed
    if isinstance(parsed, dict):
        for field in ANSWER_FIELDS:
            value = parsed.get(field)
            if value:
                return value if isinstance(value, str) else json.dumps(value)
        return json.dumps(parsed)
    if isinstance(parsed, list):
        return json.dumps(parsed)
    return raw


class QuestionAnsweringClient:
    def __init__(self, url: str = QA_WEBHOOK_URL, timeout: float = QA_WEBHOOK_TIMEOUT):
        self.url = url
        self.timeout = timeout

    def ask(self, question: str) -> str:
        question = (question or "").strip()
        if not question:
            raise ValidationError("Question must not be empty")
        if not self.url:
            raise TransientIOFailure("Question answering webhook is not configured")

        try:
            response = requests.post(self.url, json={"question": question}, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Question answering webhook unreachable: {e}")
            raise TransientIOFailure(f"Question answering service unreachable: {e}")

        if not response.ok:
            logger.error(f"Question answering webhook returned {response.status_code}")
            raise TransientIOFailure(f"Question answering service returned {response.status_code}")
        return extract_answer(response.text)


qa_client = QuestionAnsweringClient()


def get_qa_client() -> QuestionAnsweringClient:
    return qa_client
