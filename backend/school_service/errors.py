from fastapi import HTTPException, status


class SchoolServiceError(HTTPException):
    """Base for lifecycle errors; `kind` names the error category."""
    kind = "Error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str):
        super().__init__(status_code=self.status_code, detail=detail)

    def __str__(self):
        return f"{self.kind}: {self.detail}"

class NotFound(SchoolServiceError):
    kind = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND

class InvalidArgument(SchoolServiceError):
    kind = "InvalidArgument"
    status_code = status.HTTP_400_BAD_REQUEST

class Forbidden(SchoolServiceError):
    kind = "Forbidden"
    status_code = status.HTTP_403_FORBIDDEN

class InvalidState(SchoolServiceError):
    kind = "InvalidState"
    status_code = status.HTTP_409_CONFLICT

class PreconditionFailed(SchoolServiceError):
    kind = "PreconditionFailed"
    status_code = status.HTTP_412_PRECONDITION_FAILED

class Conflict(SchoolServiceError):
    kind = "Conflict"
    status_code = status.HTTP_409_CONFLICT
