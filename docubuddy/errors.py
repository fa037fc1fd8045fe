"""Error taxonomy shared by the services.

Every error carries a human readable message and the HTTP status the API
answers with. Routers let these propagate; ``main`` renders them.
"""


class DocuBuddyError(Exception):
    status_code = 500
    default_message = "Unexpected error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(DocuBuddyError):
    """A required field is missing or malformed; raised before any side effect."""
    status_code = 400
    default_message = "Invalid request"


class NotAuthenticated(DocuBuddyError):
    status_code = 401
    default_message = "Could not validate credentials"


class PermissionDenied(DocuBuddyError):
    status_code = 403
    default_message = "Permission denied"


class NotFound(DocuBuddyError):
    status_code = 404
    default_message = "Not found"


class UserNotFound(NotFound):
    default_message = "User not found"


class AlreadyExists(DocuBuddyError):
    status_code = 409
    default_message = "Already exists"


class AlreadyMember(AlreadyExists):
    default_message = "This user is already a member of the selected team"


class StorageError(DocuBuddyError):
    status_code = 502
    default_message = "Storage operation failed"


class TransientIOFailure(DocuBuddyError):
    status_code = 503
    default_message = "Service temporarily unavailable"


class PartialBatchFailure(DocuBuddyError):
    """One or more units of a batch failed; the others went through."""
    status_code = 207
    default_message = "Some files failed to upload"

    def __init__(self, result, message: str | None = None):
        self.result = result
        super().__init__(message)
