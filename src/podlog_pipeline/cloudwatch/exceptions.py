"""
Custom exceptions for the CloudWatch sync engine.

Storage failures live in ``podlog_pipeline.storage``; everything raised while
talking to the log API or interpreting its output is defined here.
"""


class PodLogError(Exception):
    """
    Base exception for all sync engine errors.

    All other engine exceptions inherit from this class,
    allowing for broad exception catching when needed.
    """

    pass


class LogGroupNotFoundError(PodLogError):
    """
    Raised when the requested log group does not exist.

    Attributes:
        group: The missing log group name
        profile: The AWS profile the lookup ran under (optional)
    """

    def __init__(self, group: str, profile: str | None = None):
        self.group = group
        self.profile = profile
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.profile:
            return f"Log group '{self.group}' not found (profile='{self.profile}')"
        return f"Log group '{self.group}' not found"


class PaginationExceededError(PodLogError):
    """
    Raised when a cursor walk is still going after the depth limit.

    Attributes:
        max_depth: The depth limit that was exceeded
        operation: Name of the paginated operation (optional)
    """

    def __init__(
        self,
        message: str = "pagination depth exceeded",
        max_depth: int | None = None,
        operation: str | None = None,
    ):
        self.message = message
        self.max_depth = max_depth
        self.operation = operation
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        context = []
        if self.operation:
            context.append(f"operation='{self.operation}'")
        if self.max_depth is not None:
            context.append(f"max_depth={self.max_depth}")
        if context:
            return f"{self.message} ({', '.join(context)})"
        return self.message


class EnvelopeParseError(PodLogError):
    """
    Raised when an event message is not a fluentd docker envelope.

    Attributes:
        message: Detailed error message
        raw: The offending event message (optional)
    """

    def __init__(self, message: str, raw: str | None = None):
        self.message = message
        self.raw = raw
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.raw:
            # Truncate long lines for readability
            content = self.raw[:100] + "..." if len(self.raw) > 100 else self.raw
            return f"{self.message} (raw={content!r})"
        return self.message


class LogSourceError(PodLogError):
    """
    Raised when the log API call fails for any other reason.

    Attributes:
        operation: The API operation that failed
        error_code: Service error code, when the API returned one
    """

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        error_code: str | None = None,
    ):
        self.message = message
        self.operation = operation
        self.error_code = error_code
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.operation and self.error_code:
            return f"{self.operation} failed [{self.error_code}]: {self.message}"
        elif self.operation:
            return f"{self.operation} failed: {self.message}"
        return self.message
