"""Failure taxonomy for study plan generation.

Every error carries a ``user_message`` that is safe to show in the UI.
Internally the classes stay distinct so the retry policy and telemetry can
tell them apart.
"""

GENERIC_FAILURE_MESSAGE = (
    "Failed to analyze documents. Please ensure files are valid and try again."
)


class StudyPlanError(Exception):
    """Base class for everything the generation pipeline can raise."""

    user_message: str = GENERIC_FAILURE_MESSAGE

    def __init__(self, message: str, *, user_message: str | None = None):
        super().__init__(message)
        if user_message is not None:
            self.user_message = user_message


class ValidationError(StudyPlanError):
    """Pre-flight input problem. The message is shown to the user as-is."""

    def __init__(self, message: str):
        super().__init__(message, user_message=message)


class EncodingError(StudyPlanError):
    def __init__(self, filename: str, reason: str = ""):
        self.filename = filename
        detail = f"Could not read file \"{filename}\""
        if reason:
            detail += f": {reason}"
        super().__init__(detail, user_message=f"Could not read file \"{filename}\".")


class ProviderError(StudyPlanError):
    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TransientProviderError(ProviderError):
    """Rate limit or temporary unavailability; safe to retry."""


class FatalProviderError(ProviderError):
    """Auth, quota or malformed-request failure; retrying will not help."""


class MalformedResponseError(StudyPlanError):
    pass


class GenerationInProgressError(StudyPlanError):
    def __init__(self):
        super().__init__(
            "A generation is already in progress",
            user_message="An analysis is already running. Please wait for it to finish.",
        )
