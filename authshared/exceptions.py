"""
Exception hierarchy for the session-aware HTTP client.

This module defines structured exceptions with error codes, context information,
and recovery suggestions so every stage of the request pipeline reports failures
the same way.
"""

from datetime import datetime
from typing import Optional, Dict, Any, List
from enum import Enum


class ErrorCode(Enum):
    """Standardized error codes for the client pipeline."""

    # Authentication and session errors (1000-1099)
    AUTH_TOKEN_EXPIRED = "AUTH_1001"
    AUTH_SESSION_EXPIRED = "AUTH_1002"
    AUTH_REFRESH_FAILED = "AUTH_1003"
    AUTH_LOGIN_FAILED = "AUTH_1004"
    AUTH_RETRY_LIMIT_EXCEEDED = "AUTH_1005"

    # Network and transport errors (2000-2099)
    NETWORK_CONNECTION_FAILED = "NETWORK_2001"
    NETWORK_TIMEOUT = "NETWORK_2002"

    # HTTP status errors (3000-3099)
    HTTP_CLIENT_ERROR = "HTTP_3001"
    HTTP_SERVER_ERROR = "HTTP_3002"

    # Payload codec errors (4000-4099)
    CODEC_DECODE_FAILED = "CODEC_4001"
    CODEC_ENCODE_FAILED = "CODEC_4002"

    # Configuration errors (8000-8099)
    CONFIG_INVALID_VALUE = "CONFIG_8001"
    CONFIG_INVALID_FORMAT = "CONFIG_8002"


class ErrorSeverity(Enum):
    """Error severity levels for logging and handling."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RecoveryAction(Enum):
    """Suggested recovery actions for errors."""
    RETRY_WITH_BACKOFF = "retry_with_backoff"
    REFRESH_TOKEN = "refresh_token"
    LOGIN_AGAIN = "login_again"
    USER_INTERVENTION = "user_intervention"
    CONTACT_ADMIN = "contact_admin"


class AuthClientError(Exception):
    """
    Base exception class for all client pipeline errors.

    Provides structured error information including error codes, context,
    and recovery suggestions for consistent error handling.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        context: Optional[Dict[str, Any]] = None,
        recovery_actions: Optional[List[RecoveryAction]] = None,
        cause: Optional[Exception] = None,
        user_message: Optional[str] = None
    ):
        super().__init__(message)

        self.message = message
        self.error_code = error_code
        self.severity = severity
        self.context = context or {}
        self.recovery_actions = recovery_actions or []
        self.cause = cause
        self.user_message = user_message or message
        self.timestamp = datetime.now()

        if cause:
            self.context['cause_type'] = type(cause).__name__
            self.context['cause_message'] = str(cause)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary format for serialization."""
        return {
            'error': {
                'code': self.error_code.value,
                'message': self.message,
                'user_message': self.user_message,
                'severity': self.severity.value,
                'timestamp': self.timestamp.isoformat(),
                'context': self.context,
                'recovery_actions': [action.value for action in self.recovery_actions],
                'cause': {
                    'type': self.context.get('cause_type'),
                    'message': self.context.get('cause_message')
                } if self.cause else None
            }
        }


class TransportError(AuthClientError):
    """Network or transport level failure; never handled by the refresh flow."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.NETWORK_CONNECTION_FAILED, **kwargs):
        super().__init__(
            message=message,
            error_code=error_code,
            severity=ErrorSeverity.MEDIUM,
            recovery_actions=[RecoveryAction.RETRY_WITH_BACKOFF],
            **kwargs
        )


class ResponseError(AuthClientError):
    """A response arrived with a non-success HTTP status."""

    def __init__(self, message: str, response, error_code: Optional[ErrorCode] = None, **kwargs):
        context = kwargs.pop('context', {})
        context['status'] = response.status
        context['url'] = response.config.url if response.config else None

        if error_code is None:
            error_code = (ErrorCode.HTTP_SERVER_ERROR if response.status >= 500
                          else ErrorCode.HTTP_CLIENT_ERROR)

        kwargs.setdefault('severity', ErrorSeverity.MEDIUM)
        super().__init__(
            message=message,
            error_code=error_code,
            context=context,
            **kwargs
        )
        self.response = response

    @property
    def status(self) -> int:
        return self.response.status

    @property
    def config(self):
        return self.response.config


class AuthExpiredError(ResponseError):
    """The access token was rejected; recoverable through a token refresh."""

    def __init__(self, response, **kwargs):
        super().__init__(
            message=f"Access token expired ({response.status})",
            response=response,
            error_code=kwargs.pop('error_code', ErrorCode.AUTH_TOKEN_EXPIRED),
            severity=ErrorSeverity.HIGH,
            recovery_actions=[RecoveryAction.REFRESH_TOKEN],
            **kwargs
        )


class SessionExpiredError(ResponseError):
    """The session itself is over; the user has to log in again."""

    def __init__(self, response, **kwargs):
        super().__init__(
            message=f"Session expired ({response.status})",
            response=response,
            error_code=ErrorCode.AUTH_SESSION_EXPIRED,
            severity=ErrorSeverity.HIGH,
            recovery_actions=[RecoveryAction.LOGIN_AGAIN],
            user_message="Session Expired",
            **kwargs
        )


class RefreshFailureError(AuthClientError):
    """The refresh endpoint itself failed; treated as an expired session."""

    def __init__(self, message: str = "Token Update Failed", **kwargs):
        super().__init__(
            message=message,
            error_code=ErrorCode.AUTH_REFRESH_FAILED,
            severity=ErrorSeverity.HIGH,
            recovery_actions=[RecoveryAction.LOGIN_AGAIN],
            user_message=kwargs.pop('user_message', "Session Expired"),
            **kwargs
        )


class LoginFailedError(AuthClientError):
    """The login call was rejected or returned no usable identity."""

    def __init__(self, message: str = "Login Failed", **kwargs):
        super().__init__(
            message=message,
            error_code=ErrorCode.AUTH_LOGIN_FAILED,
            severity=ErrorSeverity.MEDIUM,
            recovery_actions=[RecoveryAction.USER_INTERVENTION],
            user_message=kwargs.pop('user_message', "Login Failed"),
            **kwargs
        )


class DecodeError(AuthClientError):
    """An encoded payload could not be turned back into a value."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message,
            error_code=kwargs.pop('error_code', ErrorCode.CODEC_DECODE_FAILED),
            severity=ErrorSeverity.MEDIUM,
            recovery_actions=[RecoveryAction.CONTACT_ADMIN],
            **kwargs
        )


class ConfigurationError(AuthClientError):
    """Configuration related errors."""

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        context = kwargs.pop('context', {})
        if config_key:
            context['config_key'] = config_key

        super().__init__(
            message=message,
            error_code=kwargs.pop('error_code', ErrorCode.CONFIG_INVALID_VALUE),
            severity=ErrorSeverity.HIGH,
            recovery_actions=[RecoveryAction.USER_INTERVENTION],
            context=context,
            **kwargs
        )
