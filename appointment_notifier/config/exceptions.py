"""Custom exceptions for configuration management."""

from typing import List, Optional


class ConfigurationError(Exception):
    """
    Raised when the notifier configuration (YAML file or environment) is invalid.

    Carries the individual validation errors plus suggestions for fixing
    them, and renders all of it into the exception message so the CLI can
    print it as-is.
    """

    def __init__(
        self,
        message: str,
        errors: Optional[List[str]] = None,
        suggestions: Optional[List[str]] = None,
    ):
        """
        Initialize ConfigurationError.

        Args:
            message: Primary error message (e.g., "Missing required environment variable: SMTP_HOST")
            errors: Individual validation errors, one per offending setting
            suggestions: Hints for fixing the configuration (e.g., "Copy .env.example to .env")
        """
        self.message = message
        self.errors = errors or []
        self.suggestions = suggestions or []
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the error message with all errors and suggestions.

        Errors are numbered; suggestions are bulleted.
        """
        parts = [self.message]

        if self.errors:
            parts.append("\nValidation Errors:")
            for i, error in enumerate(self.errors, 1):
                parts.append(f"  {i}. {error}")

        if self.suggestions:
            parts.append("\nSuggestions:")
            for suggestion in self.suggestions:
                parts.append(f"  - {suggestion}")

        return "\n".join(parts)
