"""Domain errors raised by the service layer.

Routers never build HTTP errors for these themselves; the handlers registered
in ``tutordesk.main`` translate them into responses.
"""


class TutorDeskError(Exception):
    """Base class for all domain errors."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(TutorDeskError):
    """Raised when input is malformed or a required field is missing.

    Args:
        message: Summary of the problem.
        errors: Field-level details, e.g. ``[{"field": "url", "message": "..."}]``.
    """

    status_code = 400

    def __init__(self, message: str, errors: list[dict] | None = None):
        super().__init__(message)
        self.errors = errors or []

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, [{"field": field, "message": message}])


class NotFoundError(TutorDeskError):
    """Raised when an entity is absent or already deleted."""

    status_code = 404

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class AccessDeniedError(TutorDeskError):
    status_code = 403


class DuplicateNameError(TutorDeskError):
    status_code = 400


class CyclicHierarchyError(TutorDeskError):
    status_code = 400


class InvalidParentError(TutorDeskError):
    status_code = 400


class InvalidFolderError(TutorDeskError):
    status_code = 400


class NoFileError(TutorDeskError):
    status_code = 400


class FileMissingError(TutorDeskError):
    status_code = 404


class ExternalServiceError(TutorDeskError):
    """Raised by blob-store and conferencing adapters.

    Services catch it and continue with a degraded local state; it only
    reaches a client when no such state exists.
    """

    status_code = 502

    def __init__(self, service: str, message: str):
        self.service = service
        super().__init__(f"{service}: {message}")
