"""
Custom exceptions for the ingestion module.

Provides specialized exception classes for the error conditions met
while resolving log sources and decoding log lines.
"""


class IngestionError(Exception):
    """
    Base exception for all ingestion-related errors.

    All other ingestion exceptions inherit from this class,
    allowing for broad exception catching when needed.
    """

    pass


class ParseError(IngestionError):
    """
    Raised when a log line cannot be decoded.

    Attributes:
        line_number: The line number where parsing failed (optional)
        line_content: The content of the problematic line (optional)
        message: Detailed error message
    """

    def __init__(
        self,
        message: str,
        line_number: int | None = None,
        line_content: str | None = None,
    ):
        self.line_number = line_number
        self.line_content = line_content
        self.message = message
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the error message with line context."""
        if self.line_number is not None and self.line_content:
            # Truncate long lines for readability
            content = (
                self.line_content[:100] + "..."
                if len(self.line_content) > 100
                else self.line_content
            )
            return f"{self.message} (line {self.line_number}: {content!r})"
        elif self.line_number is not None:
            return f"{self.message} (line {self.line_number})"
        return self.message


class StaleRecordError(ParseError):
    """
    Raised when a well-formed record is older than the ingestion cutoff.

    Stale records are skipped like malformed lines but counted separately.
    """

    pass


class SourceValidationError(IngestionError):
    """
    Raised when a site's log source cannot be resolved.

    Used when a glob pattern fails to expand or matches no files.

    Attributes:
        source_type: 'pattern' or 'file'
        reason: Detailed explanation of why validation failed
    """

    def __init__(
        self,
        message: str,
        source_type: str | None = None,
        reason: str | None = None,
    ):
        self.source_type = source_type
        self.reason = reason
        self.message = message
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the error message with source context."""
        parts = [self.message]
        if self.source_type:
            parts.append(f"source_type='{self.source_type}'")
        if self.reason:
            parts.append(f"reason: {self.reason}")
        return " - ".join(parts)


class DecoderNotFoundError(IngestionError):
    """
    Raised when no decoder is registered for a log type.

    Attributes:
        log_type: The requested log type
        available_types: List of registered log types
    """

    def __init__(
        self,
        log_type: str,
        available_types: list[str] | None = None,
    ):
        self.log_type = log_type
        self.available_types = available_types or []
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the error message with available log types."""
        if self.available_types:
            available = ", ".join(sorted(self.available_types))
            return f"Unknown log type: '{self.log_type}'. Available types: {available}"
        return f"Unknown log type: '{self.log_type}'. No decoders registered."
