class LMSError(Exception):
    """Base error carrying the HTTP status and JSON payload it maps to."""

    status_code = 400
    default_message = "Request failed"

    def __init__(self, message=None, **payload):
        super().__init__(message or self.__class__.default_message)
        self.message = message or self.__class__.default_message
        self.payload = payload

    def to_dict(self):
        return {"error": self.message, **self.payload}


class ValidationError(LMSError):
    status_code = 400
    default_message = "Invalid request data"


class NotFound(LMSError):
    status_code = 404
    default_message = "Not found"


class AccessDenied(LMSError):
    status_code = 403
    default_message = "Unauthorized"


class MaxAttemptsReached(LMSError):
    status_code = 403
    default_message = "Maximum attempts reached"


class AttemptAlreadyStarted(LMSError):
    status_code = 409
    default_message = "Quiz attempt already started"


class PersistenceFailure(LMSError):
    status_code = 500
    default_message = "Could not save changes, please try again"
