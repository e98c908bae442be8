"""Custom exceptions for ClipBinder.

This module defines all custom exceptions used throughout the package.
All exceptions inherit from ClipBinderError for easy catching.

Exception classes include context dictionaries for structured logging
and debugging. Use the `context` property to access additional details.

Only contract violations (InvalidInputError, ConfigError and friends)
escape ``match``/``run``. The acquisition errors below are tier-local: the
pipeline catches them, classifies them and folds them into per-scene status.
"""

from typing import Any


class ClipBinderError(Exception):
    """Base exception for all ClipBinder errors.

    All custom exceptions in the package should inherit from this class.
    Provides a context dictionary for structured error information.

    Attributes:
        context: Dictionary with additional error context

    Example:
        >>> try:
        ...     raise ClipBinderError("Something went wrong", context={"scene_id": "s1"})
        ... except ClipBinderError as e:
        ...     print(f"Error: {e}, Context: {e.context}")
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        """Initialize ClipBinderError.

        Args:
            message: Error message
            context: Optional dictionary with additional context
        """
        self.context = context or {}
        super().__init__(message)

    def with_context(self, **kwargs: Any) -> "ClipBinderError":
        """Add additional context to the exception.

        Args:
            **kwargs: Key-value pairs to add to context

        Returns:
            Self for method chaining
        """
        self.context.update(kwargs)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization.

        Returns:
            Dictionary with error type, message, and context
        """
        return {
            "error_type": self.__class__.__name__,
            "message": str(self),
            "context": self.context,
        }


# ============================================
# Configuration Errors
# ============================================


class ConfigError(ClipBinderError):
    """Base exception for configuration-related errors."""

    def __init__(
        self,
        message: str,
        config_path: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize ConfigError.

        Args:
            message: Error message
            config_path: Path to the config file/key
            context: Additional context
        """
        ctx = context or {}
        if config_path:
            ctx["config_path"] = config_path
        super().__init__(message, context=ctx)


class ConfigValidationError(ConfigError):
    """Raised when configuration validation fails.

    Supports two usage patterns:
    1. Simple: ConfigValidationError("error message")
    2. Structured: ConfigValidationError(field="name", value="x", reason="invalid")

    Attributes:
        field: Field that failed validation (optional)
        value: Invalid value (optional)
        reason: Validation failure reason (optional)
    """

    def __init__(
        self,
        message: str | None = None,
        *,
        field: str | None = None,
        value: Any = None,
        reason: str | None = None,
        config_path: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize ConfigValidationError.

        Args:
            message: Error message (for simple usage)
            field: Field that failed validation
            value: Invalid value
            reason: Validation failure reason
            config_path: Path to config file
            context: Additional context
        """
        ctx = context or {}

        self.field = field
        self.value = value
        self.reason = reason

        if field and reason:
            ctx.update({"field": field, "reason": reason})
            if value is not None:
                ctx["value"] = str(value)
            final_message = f"Config validation failed for '{field}': {reason}"
        elif message:
            final_message = message
        else:
            final_message = "Configuration validation failed"

        super().__init__(final_message, config_path=config_path, context=ctx)


class ConfigNotFoundError(ConfigError):
    """Raised when a required configuration is not found.

    Attributes:
        config_key: The configuration key that was not found
    """

    def __init__(
        self,
        config_key: str,
        config_path: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize ConfigNotFoundError.

        Args:
            config_key: Configuration key that was not found
            config_path: Path to config file
            context: Additional context
        """
        ctx = context or {}
        ctx["config_key"] = config_key
        super().__init__(
            f"Configuration '{config_key}' not found",
            config_path=config_path,
            context=ctx,
        )
        self.config_key = config_key


# ============================================
# Input Contract Errors
# ============================================


class InvalidInputError(ClipBinderError):
    """Raised when a caller violates the input contract of match/run.

    Examples are duplicate scene ids or overlapping scenes. These are
    programming errors and propagate to the caller as hard errors.

    Attributes:
        field: Offending field or input name
    """

    def __init__(
        self,
        message: str,
        field: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize InvalidInputError.

        Args:
            message: Error message
            field: Offending field or input name
            context: Additional context
        """
        ctx = context or {}
        if field:
            ctx["field"] = field
        self.field = field
        super().__init__(message, context=ctx)


# ============================================
# Acquisition Errors (tier-local)
# ============================================


class AcquisitionError(ClipBinderError):
    """Base exception for acquisition failures.

    Attributes:
        provider: Provider that raised the error (if any)
        retryable: Whether the pipeline may retry the same call
    """

    retryable: bool = True

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize AcquisitionError.

        Args:
            message: Error message
            provider: Provider name
            context: Additional context
        """
        ctx = context or {}
        if provider:
            ctx["provider"] = provider
        self.provider = provider
        super().__init__(message, context=ctx)


class NoCredentialsError(AcquisitionError):
    """Raised when a provider is called without an API key.

    The pipeline treats this as an automatic tier skip, not a failure.
    """

    retryable = False

    def __init__(self, provider: str, context: dict[str, Any] | None = None) -> None:
        """Initialize NoCredentialsError.

        Args:
            provider: Provider missing credentials
            context: Additional context
        """
        super().__init__(f"No credentials configured for {provider}", provider, context)


class SearchError(AcquisitionError):
    """Raised when a provider search call fails.

    Attributes:
        status_code: HTTP status code (if applicable)
    """

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        status_code: int | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize SearchError.

        Args:
            message: Error message
            provider: Provider name
            status_code: HTTP status code
            context: Additional context
        """
        ctx = context or {}
        if status_code is not None:
            ctx["status_code"] = status_code
        self.status_code = status_code
        super().__init__(message, provider=provider, context=ctx)


class RateLimitError(SearchError):
    """Raised when a provider answers 429.

    Attributes:
        retry_after: Seconds the provider asked us to wait
    """

    def __init__(
        self,
        provider: str,
        retry_after: float | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize RateLimitError.

        Args:
            provider: Provider that rate limited
            retry_after: Seconds to wait before retrying
            context: Additional context
        """
        ctx = context or {}
        if retry_after is not None:
            ctx["retry_after"] = retry_after
        self.retry_after = retry_after

        message = f"Rate limit exceeded for {provider}"
        if retry_after:
            message += f" (retry after {retry_after:.1f}s)"

        super().__init__(message, provider=provider, status_code=429, context=ctx)


class DownloadError(AcquisitionError):
    """Raised when fetching a candidate fails.

    Attributes:
        url: URL being downloaded
    """

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        url: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize DownloadError.

        Args:
            message: Error message
            provider: Provider name
            url: URL being downloaded
            context: Additional context
        """
        ctx = context or {}
        if url:
            ctx["url"] = url
        self.url = url
        super().__init__(message, provider=provider, context=ctx)


class GenerationError(AcquisitionError):
    """Raised when AI image generation fails.

    Attributes:
        prompt: Prompt that was sent
    """

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        prompt: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize GenerationError.

        Args:
            message: Error message
            provider: Generator name
            prompt: Prompt that was sent
            context: Additional context
        """
        ctx = context or {}
        if prompt:
            ctx["prompt"] = prompt[:200]
        self.prompt = prompt
        super().__init__(message, provider=provider, context=ctx)


class CallTimeoutError(AcquisitionError):
    """Raised when a single provider call exceeds its timeout.

    Treated like any other tier-local failure (retried, then the tier
    falls through).

    Attributes:
        timeout: Seconds that were allowed
    """

    def __init__(
        self,
        operation: str,
        timeout: float,
        provider: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize CallTimeoutError.

        Args:
            operation: Operation that timed out (search, download, generate)
            timeout: Seconds that were allowed
            provider: Provider name
            context: Additional context
        """
        ctx = context or {}
        ctx.update({"operation": operation, "timeout": timeout})
        self.timeout = timeout
        super().__init__(
            f"{operation} timed out after {timeout:.0f}s", provider=provider, context=ctx
        )


class ProviderFaultError(AcquisitionError):
    """Raised when a provider call fails with an unexpected exception.

    Covers provider bugs and malformed payloads. Not retried; the tier
    moves on to its next provider.

    Attributes:
        cause: Exception raised by the provider
    """

    retryable = False

    def __init__(
        self,
        operation: str,
        cause: Exception,
        provider: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize ProviderFaultError.

        Args:
            operation: Operation that failed (search, download, generate)
            cause: Exception raised by the provider
            provider: Provider name
            context: Additional context
        """
        ctx = context or {}
        ctx.update({"operation": operation, "cause": type(cause).__name__})
        self.cause = cause
        super().__init__(
            f"{operation} crashed: {type(cause).__name__}: {cause}", provider=provider, context=ctx
        )


class ConstraintViolationError(AcquisitionError):
    """Raised when a candidate fails size/resolution/aspect checks.

    Never retried; the next candidate is tried instead.

    Attributes:
        violations: Human-readable list of failed checks
    """

    retryable = False

    def __init__(
        self,
        violations: list[str],
        provider: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize ConstraintViolationError.

        Args:
            violations: Failed checks
            provider: Provider name
            context: Additional context
        """
        ctx = context or {}
        ctx["violations"] = violations
        self.violations = violations
        super().__init__(
            f"Constraint violation: {'; '.join(violations)}", provider=provider, context=ctx
        )


class SceneAcquisitionFailed(AcquisitionError):
    """Terminal per-scene outcome after every tier is exhausted.

    Recorded in the run summary; never raised to the caller of ``run``.

    Attributes:
        scene_id: Scene that could not be filled
        attempts: Reason per tier that was tried
    """

    retryable = False

    def __init__(
        self,
        scene_id: str,
        attempts: dict[str, str] | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize SceneAcquisitionFailed.

        Args:
            scene_id: Scene identifier
            attempts: Mapping of tier name to failure reason
            context: Additional context
        """
        ctx = context or {}
        ctx["scene_id"] = scene_id
        self.scene_id = scene_id
        self.attempts = attempts or {}
        if self.attempts:
            ctx["attempts"] = self.attempts
            detail = ", ".join(f"{tier}: {reason}" for tier, reason in self.attempts.items())
            message = f"No media acquired for scene {scene_id} ({detail})"
        else:
            message = f"No media acquired for scene {scene_id} (no tier available)"
        super().__init__(message, context=ctx)


class OperationCancelled(ClipBinderError):
    """Raised inside a worker when the run's cancel token fires.

    Cancellation is a normal partial-success outcome; the orchestrator
    converts this into ``RunSummary.cancelled`` instead of an error.
    """

    def __init__(self, reason: str | None = None) -> None:
        """Initialize OperationCancelled.

        Args:
            reason: Optional cancellation reason
        """
        super().__init__(
            f"Operation cancelled: {reason}" if reason else "Operation cancelled",
            context={"reason": reason} if reason else None,
        )
        self.reason = reason


__all__ = [
    "AcquisitionError",
    "CallTimeoutError",
    "ClipBinderError",
    "ConfigError",
    "ConfigNotFoundError",
    "ConfigValidationError",
    "ConstraintViolationError",
    "DownloadError",
    "GenerationError",
    "InvalidInputError",
    "NoCredentialsError",
    "OperationCancelled",
    "ProviderFaultError",
    "RateLimitError",
    "SceneAcquisitionFailed",
    "SearchError",
]
