"""Custom exceptions for the tracker application."""


class TrackerException(Exception):
    """Base class for tracker exceptions.

    All custom exceptions should inherit from this class so callers can
    catch tracker failures without swallowing programming errors.
    """

    def __init__(self, message: str = "Tracker error"):
        self.message = message
        super().__init__(message)


class MarkupStructureError(TrackerException):
    """Raised when a container or field cannot be located in portal markup.

    Always isolated to a single subject: extractors catch it per subject
    and continue with the rest of the batch.
    """

    def __init__(self, detail: str, subject_index: int | None = None):
        self.detail = detail
        self.subject_index = subject_index
        message = detail
        if subject_index is not None:
            message = f"Subject {subject_index}: {detail}"
        super().__init__(message)


class PortalFetchError(TrackerException):
    """Raised when the portal answers but the response is unusable.

    Covers non-2xx responses and empty payloads. Not network-class: the
    coordinator does not switch to offline mode for these.
    """

    def __init__(self, message: str = "Portal request failed", status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class PortalNetworkError(PortalFetchError):
    """Raised when the portal cannot be reached at all.

    Timeouts, refused connections and unreachable hosts fall in this class.
    """

    def __init__(self, message: str = "Portal unreachable"):
        super().__init__(message)


class ProjectionNotApplicable(TrackerException):
    """Raised when no lectures have been delivered yet."""

    def __init__(self, subject_code: str = ""):
        self.subject_code = subject_code
        message = "No lectures delivered yet"
        if subject_code:
            message += f" for {subject_code}"
        super().__init__(message)


class InvalidPolicyError(TrackerException, ValueError):
    """Raised when projection thresholds or clamps are inconsistent."""
