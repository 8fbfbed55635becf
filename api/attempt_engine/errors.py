"""
Error taxonomy for the Attempt Engine.
Services raise these; the FastAPI app renders them with their status code.
"""


class AttemptEngineError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(AttemptEngineError):
    """Missing attempt/template/question, or one owned by another user."""
    status_code = 404


class InvalidArgument(AttemptEngineError):
    status_code = 400


class Conflict(AttemptEngineError):
    """Mutation attempted on an attempt that is not in progress."""
    status_code = 409


class Internal(AttemptEngineError):
    status_code = 500


class CatalogUnavailable(Internal):
    """Catalog lookup timed out or failed in transport."""
    status_code = 503
