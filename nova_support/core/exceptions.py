"""
Core exceptions for Nova Support.
Custom exception classes for structured error handling.
"""

from typing import Optional, Dict, Any


class NovaSupportException(Exception):
    """Base exception for Nova Support errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "NOVA_SUPPORT_ERROR",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


# =========================
# Configuration Exceptions
# =========================

class ConfigurationException(NovaSupportException):
    """Raised when a required setting (usually a credential) is missing."""

    def __init__(self, setting: str):
        super().__init__(
            message=f"Required setting '{setting}' is not configured",
            error_code="CONFIGURATION_ERROR",
            status_code=500,
            details={"setting": setting}
        )


# =========================
# Model Exceptions
# =========================

class ModelException(NovaSupportException):
    """Base exception for conversational model errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "MODEL_ERROR",
        status_code: int = 502,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status_code,
            details=details
        )


class ModelAuthException(ModelException):
    """Raised when the model API rejects our credentials."""

    def __init__(self, api_error: str):
        super().__init__(
            message=f"Model API rejected credentials: {api_error}",
            error_code="MODEL_AUTH_ERROR",
            status_code=401,
            details={"api_error": api_error}
        )


class ModelRequestException(ModelException):
    """Raised when the model API reports a malformed request."""

    def __init__(self, api_error: str):
        super().__init__(
            message=f"Model API rejected the request: {api_error}",
            error_code="MODEL_REQUEST_ERROR",
            status_code=400,
            details={"api_error": api_error}
        )


class ModelTimeoutException(ModelException):
    """Raised when a model call times out."""

    def __init__(self, timeout_seconds: float):
        super().__init__(
            message=f"Model call timed out after {timeout_seconds} seconds",
            error_code="MODEL_TIMEOUT",
            status_code=504,
            details={"timeout_seconds": timeout_seconds}
        )


class ModelRateLimitException(ModelException):
    """Raised when the model API rate limit is exceeded."""

    def __init__(self, retry_after: Optional[float] = None):
        super().__init__(
            message="Model API rate limit exceeded",
            error_code="MODEL_RATE_LIMIT",
            status_code=429,
            details={"retry_after_seconds": retry_after}
        )


class ModelTransportException(ModelException):
    """Raised on connection-level failures talking to the model."""

    def __init__(self, error: str):
        super().__init__(
            message=f"Model transport failure: {error}",
            error_code="MODEL_TRANSPORT_ERROR",
            details={"error": error}
        )


# =========================
# Tool Exceptions
# =========================

class ToolException(NovaSupportException):
    """Base exception for tool dispatch errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "TOOL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=500,
            details=details
        )


class ToolNotFoundException(ToolException):
    """Raised when requested tool is not found."""

    def __init__(self, tool_name: str):
        super().__init__(
            message=f"Tool '{tool_name}' not found in registry",
            error_code="UNKNOWN_TOOL",
            details={"tool_name": tool_name}
        )


class ToolValidationException(ToolException):
    """Raised when tool arguments fail validation."""

    def __init__(self, tool_name: str, validation_errors: list):
        super().__init__(
            message=f"Invalid arguments for '{tool_name}': " + "; ".join(validation_errors),
            error_code="INVALID_ARGUMENTS",
            details={"tool_name": tool_name, "validation_errors": validation_errors}
        )


class ToolExecutionException(ToolException):
    """Raised when a tool handler fails unexpectedly."""

    def __init__(self, tool_name: str, error: str):
        super().__init__(
            message=f"Tool '{tool_name}' execution failed: {error}",
            error_code="TOOL_EXECUTION_FAILED",
            details={"tool_name": tool_name, "error": error}
        )


# =========================
# Session Exceptions
# =========================

class SessionException(NovaSupportException):
    """Base exception for session errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "SESSION_ERROR",
        status_code: int = 400,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status_code,
            details=details
        )


class SessionClosedException(SessionException):
    """Raised when something is sent to a live session that is gone."""

    def __init__(self):
        super().__init__(
            message="Live session is closed",
            error_code="SESSION_CLOSED",
            status_code=409
        )


class CustomerNotFoundException(SessionException):
    """Raised when switching to a customer that does not exist."""

    def __init__(self, customer_id: str):
        super().__init__(
            message=f"Customer '{customer_id}' not found",
            error_code="CUSTOMER_NOT_FOUND",
            status_code=404,
            details={"customer_id": customer_id}
        )


class UnsupportedLanguageException(SessionException):
    """Raised when switching to a language we cannot speak."""

    def __init__(self, language: str, supported: list):
        super().__init__(
            message=f"Language '{language}' is not supported",
            error_code="UNSUPPORTED_LANGUAGE",
            details={"language": language, "supported_languages": supported}
        )


class AudioDeviceException(SessionException):
    """Raised when microphone or speaker acquisition fails."""

    def __init__(self, device: str, error: str):
        super().__init__(
            message=f"Could not acquire {device}: {error}",
            error_code="AUDIO_DEVICE_ERROR",
            status_code=500,
            details={"device": device, "error": error}
        )


# =========================
# Business Rule Exceptions
# =========================

class BusinessRuleException(NovaSupportException):
    """Raised by the HTTP storefront when a cart rule blocks an action."""

    def __init__(self, message: str, rule: str):
        super().__init__(
            message=message,
            error_code="BUSINESS_RULE_VIOLATION",
            status_code=409,
            details={"rule": rule}
        )


# =========================
# User-facing messages
# =========================

_USER_MESSAGES = {
    "configuration": {
        "en": "Configuration Error: API Key is missing. Please provide a valid Groq API Key.",
        "fr": "Erreur de configuration : la clé API est manquante. Veuillez fournir une clé API Groq valide."
    },
    "auth": {
        "en": "Authentication Error: The API Key provided is invalid or expired. Please check your configuration.",
        "fr": "Erreur d'authentification : la clé API fournie est invalide ou expirée. Veuillez vérifier votre configuration."
    },
    "request": {
        "en": "Request Error: There was an issue with the request. Please try again.",
        "fr": "Erreur de requête : un problème est survenu avec la demande. Veuillez réessayer."
    },
    "generic": {
        "en": "Sorry, I encountered an error. Please try again.",
        "fr": "Désolé, j'ai rencontré une erreur. Veuillez réessayer."
    }
}


def user_message_for(exc: Optional[BaseException], language: str = "en") -> str:
    """
    Map an exception onto a non-technical message for the end user.

    Raw exception text is never part of the result. `None` gives the
    generic message.
    """
    if isinstance(exc, ConfigurationException):
        kind = "configuration"
    elif isinstance(exc, ModelAuthException):
        kind = "auth"
    elif isinstance(exc, ModelRequestException):
        kind = "request"
    else:
        kind = "generic"

    messages = _USER_MESSAGES[kind]
    return messages.get(language, messages["en"])
