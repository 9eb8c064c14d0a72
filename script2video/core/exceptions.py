"""
script2video Custom Exceptions

Custom exception classes for error handling throughout the pipeline.
"""


class Script2VideoError(Exception):
    """Base exception for all script2video errors."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================

class ConfigurationError(Script2VideoError):
    """Raised when there's an issue with configuration."""
    pass


class MissingConfigError(ConfigurationError):
    """Raised when a required configuration is missing."""
    pass


class InvalidConfigError(ConfigurationError):
    """Raised when a configuration value is invalid."""
    pass


# =============================================================================
# PIPELINE ERRORS
# =============================================================================

class PipelineError(Script2VideoError):
    """Base exception for orchestrator misuse."""
    pass


class PhaseTransitionError(PipelineError):
    """Raised when a phase transition is not allowed from the current state."""

    def __init__(self, current: str, target: str, reason: str = ""):
        message = f"Cannot move from '{current}' to '{target}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, {"current": current, "target": target})


class ConfirmationRequiredError(PipelineError):
    """Raised when a transition is requested without explicit confirmation."""

    def __init__(self, action: str):
        super().__init__(f"Explicit confirmation required to {action}", {"action": action})


class PipelineStateError(PipelineError):
    """Raised when a runner command does not fit the current workflow state."""
    pass


class PipelineBusyError(PipelineError):
    """Raised when a command arrives while another generation is in flight."""

    def __init__(self, owner: str, requested_by: str):
        message = f"Pipeline busy: '{owner}' is running, '{requested_by}' must wait"
        super().__init__(message, {"owner": owner, "requested_by": requested_by})


# =============================================================================
# LLM ERRORS
# =============================================================================

class LLMError(Script2VideoError):
    """Base exception for LLM-related errors."""
    pass


class LLMProviderError(LLMError):
    """Raised when there's an issue with an LLM provider."""

    def __init__(self, provider: str, reason: str):
        message = f"LLM provider '{provider}' error: {reason}"
        super().__init__(message, {"provider": provider, "reason": reason})


class LLMResponseError(LLMError):
    """Raised when LLM response is invalid or unexpected."""
    pass


# =============================================================================
# PROJECT ERRORS
# =============================================================================

class ProjectError(Script2VideoError):
    """Base exception for project data errors."""
    pass


class EpisodeNotFoundError(ProjectError):
    """Raised when an episode index or id does not exist."""

    def __init__(self, index: int):
        super().__init__(f"Episode not found at index {index}", {"index": index})


class ScriptParseError(ProjectError):
    """Raised when a script cannot be split into episodes."""
    pass


class ShotImportError(ProjectError):
    """Raised when imported shot data is malformed."""

    def __init__(self, reason: str, row: int = None):
        message = f"Shot import failed: {reason}"
        details = {"reason": reason}
        if row is not None:
            details["row"] = row
        super().__init__(message, details)
