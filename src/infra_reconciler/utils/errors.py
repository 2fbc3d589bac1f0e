"""Error handling framework for reconciliation runs.

Per-resource errors (``ProbeFailure``, ``ExecutionFailure``) are collected into
plan entries and execution results; only ``ConfigurationError`` and
``CredentialError`` abort a whole run.
"""

from typing import Optional, Dict, Any, List
from enum import Enum
from dataclasses import dataclass
from azure.core.exceptions import (
    ClientAuthenticationError,
    HttpResponseError,
    ServiceRequestError,
    ServiceResponseError,
)
from botocore.exceptions import (
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    NoCredentialsError,
    PartialCredentialsError,
    ReadTimeoutError,
)


class ErrorCategory(Enum):
    """Categories of errors that can occur during reconciliation."""
    CONFIGURATION = "configuration"
    NOT_FOUND = "not_found"
    NETWORK = "network"
    PROBE = "probe"
    EXECUTION = "execution"
    CREDENTIAL = "credential"
    PERMISSION = "permission"
    CLOUD = "cloud"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    CRITICAL = "critical"  # Run cannot continue
    ERROR = "error"  # Resource failed but run can continue
    WARNING = "warning"  # Non-fatal issue
    INFO = "info"  # Informational message


@dataclass
class ErrorContext:
    """Context information for an error."""
    resource_id: Optional[str] = None
    resource_kind: Optional[str] = None
    operation: Optional[str] = None
    native_id: Optional[str] = None
    provider_code: Optional[str] = None
    request_id: Optional[str] = None
    attempts: Optional[int] = None
    additional_info: Optional[Dict[str, Any]] = None


class ReconcileError(Exception):
    """Base exception for reconciliation errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
        suggestions: Optional[List[str]] = None
    ):
        """Initialize reconciliation error.

        Args:
            message: Human-readable error message
            category: Error category
            severity: Error severity
            context: Additional context about the error
            cause: Original exception that caused this error
            suggestions: List of suggested fixes
        """
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.cause = cause
        self.suggestions = suggestions or []

    def to_user_message(self) -> str:
        """Convert error to user-friendly message.

        Returns:
            Formatted error message for display to user
        """
        lines = [f"{self.severity.value.upper()}: {self.message}"]

        if self.context.resource_id:
            lines.append(f"   Resource: {self.context.resource_id}")
        if self.context.operation:
            lines.append(f"   Operation: {self.context.operation}")

        if self.cause:
            lines.append(f"   Cause: {str(self.cause)}")

        if self.suggestions:
            lines.append("\nSuggested fixes:")
            for i, suggestion in enumerate(self.suggestions, 1):
                lines.append(f"   {i}. {suggestion}")

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization.

        Returns:
            Dictionary representation of the error
        """
        return {
            'message': self.message,
            'category': self.category.value,
            'severity': self.severity.value,
            'context': {
                'resource_id': self.context.resource_id,
                'resource_kind': self.context.resource_kind,
                'operation': self.context.operation,
                'native_id': self.context.native_id,
                'provider_code': self.context.provider_code,
                'request_id': self.context.request_id,
                'attempts': self.context.attempts,
                'additional_info': self.context.additional_info
            },
            'cause': str(self.cause) if self.cause else None,
            'suggestions': self.suggestions
        }


class NotFound(ReconcileError):
    """Resource does not exist in the cloud. Benign: drives Create/Import."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.NOT_FOUND,
            severity=ErrorSeverity.INFO,
            **kwargs
        )


class TransientProbeFailure(ReconcileError):
    """Retryable probe failure (network, throttling, timeout, 5xx)."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.NETWORK,
            severity=ErrorSeverity.WARNING,
            **kwargs
        )


class ProbeFailure(ReconcileError):
    """Probe could not determine existence. Fatal for one plan entry only."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.PROBE,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class ConfigurationError(ReconcileError):
    """Malformed catalog, settings or tracked-state store. Aborts the run."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class CredentialError(ReconcileError):
    """Error related to cloud credentials."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.CREDENTIAL,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class ExecutionFailure(ReconcileError):
    """Declarative engine call (import/remove/apply) failed."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.EXECUTION,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class ErrorHandler:
    """Handles and categorizes errors from AWS, Azure and other sources."""

    # AWS codes meaning "resource does not exist"
    AWS_NOT_FOUND_CODES = {
        'NoSuchEntity',
        'NoSuchBucket',
        'NotFound',
        '404',
        'ResourceNotFoundException',
        'InvalidVpcID.NotFound',
        'InvalidSubnetID.NotFound',
        'InvalidGroup.NotFound',
        'InvalidInstanceID.NotFound',
    }

    # AWS codes worth retrying
    AWS_TRANSIENT_CODES = {
        'RequestTimeout',
        'RequestTimeoutException',
        'ServiceUnavailable',
        'Throttling',
        'ThrottlingException',
        'TooManyRequestsException',
        'RequestLimitExceeded',
        'RequestThrottled',
        'InternalError',
        'InternalFailure',
        'ServiceFailure',
    }

    AWS_ERROR_MAPPING = {
        'InvalidClientTokenId': {
            'category': ErrorCategory.CREDENTIAL,
            'message': 'AWS credentials are invalid or expired',
            'suggestions': [
                'Verify credentials using: aws sts get-caller-identity',
                'Refresh the OIDC session if running inside GitHub Actions'
            ]
        },
        'ExpiredToken': {
            'category': ErrorCategory.CREDENTIAL,
            'message': 'AWS session token has expired',
            'suggestions': [
                'Refresh your AWS session credentials',
                'Re-run the configure-aws-credentials step'
            ]
        },
        'AccessDenied': {
            'category': ErrorCategory.PERMISSION,
            'message': 'Access denied - insufficient permissions',
            'suggestions': [
                'Check IAM policies attached to the deploying role',
                'Read-only describe/get permissions are required for probing'
            ]
        },
        'UnauthorizedOperation': {
            'category': ErrorCategory.PERMISSION,
            'message': 'Operation not authorized',
            'suggestions': [
                'Add the required ec2:Describe* permission',
                'Verify you are operating in the correct AWS region'
            ]
        },
    }

    @staticmethod
    def aws_error_code(error: ClientError) -> str:
        """Extract the error code from a botocore ClientError."""
        return error.response.get('Error', {}).get('Code', 'Unknown')

    def is_not_found(self, error: Exception) -> bool:
        """Check whether a provider exception means the resource is absent."""
        if isinstance(error, NotFound):
            return True
        if isinstance(error, ClientError):
            return self.aws_error_code(error) in self.AWS_NOT_FOUND_CODES
        if isinstance(error, HttpResponseError):
            return error.status_code == 404
        return False

    def is_transient(self, error: Exception) -> bool:
        """Check whether a provider exception is worth retrying."""
        if isinstance(error, TransientProbeFailure):
            return True
        if isinstance(error, (ConnectionError, TimeoutError)):
            return True
        if isinstance(error, (EndpointConnectionError, ConnectTimeoutError, ReadTimeoutError)):
            return True
        if isinstance(error, (ServiceRequestError, ServiceResponseError)):
            return True
        if isinstance(error, ClientError):
            if self.aws_error_code(error) in self.AWS_TRANSIENT_CODES:
                return True
            status = error.response.get('ResponseMetadata', {}).get('HTTPStatusCode', 0)
            return status >= 500
        if isinstance(error, HttpResponseError):
            return error.status_code in (408, 429) or (error.status_code or 0) >= 500
        return False

    def handle_exception(
        self,
        error: Exception,
        context: Optional[ErrorContext] = None
    ) -> ReconcileError:
        """Handle an exception and convert to ReconcileError.

        Args:
            error: The exception to handle
            context: Additional context about where the error occurred

        Returns:
            ReconcileError with categorization and suggestions
        """
        context = context or ErrorContext()

        if isinstance(error, ReconcileError):
            return error

        if isinstance(error, (NoCredentialsError, PartialCredentialsError)):
            return CredentialError(
                message='No usable AWS credentials found',
                context=context,
                cause=error,
                suggestions=[
                    'Configure AWS credentials using: aws configure',
                    'Specify a profile with --profile'
                ]
            )

        if isinstance(error, ClientAuthenticationError):
            return CredentialError(
                message='Azure authentication failed',
                context=context,
                cause=error,
                suggestions=[
                    'Authenticate with: az login',
                    'Check the federated credential subject for OIDC logins'
                ]
            )

        if self.is_not_found(error):
            return NotFound(str(error), context=context, cause=error)

        if self.is_transient(error):
            return TransientProbeFailure(
                message=f'Transient provider error: {str(error)}',
                context=context,
                cause=error,
                suggestions=['Retry the run; the cloud API may be throttling']
            )

        if isinstance(error, ClientError):
            return self._handle_aws_error(error, context)

        if isinstance(error, HttpResponseError):
            context.provider_code = getattr(error.error, 'code', None) if error.error else None
            return ReconcileError(
                message=f"Azure Error ({error.status_code}): {error.message}",
                category=ErrorCategory.CLOUD,
                severity=ErrorSeverity.ERROR,
                context=context,
                cause=error,
                suggestions=['Check the Azure activity log for this request']
            )

        return ReconcileError(
            message=str(error),
            category=ErrorCategory.UNKNOWN,
            severity=ErrorSeverity.ERROR,
            context=context,
            cause=error,
            suggestions=['Check logs for more details']
        )

    def _handle_aws_error(
        self,
        error: ClientError,
        context: ErrorContext
    ) -> ReconcileError:
        """Handle AWS ClientError.

        Args:
            error: The ClientError
            context: Error context

        Returns:
            Categorized ReconcileError
        """
        error_code = self.aws_error_code(error)
        error_message = error.response.get('Error', {}).get('Message', str(error))
        context.request_id = error.response.get('ResponseMetadata', {}).get('RequestId')
        context.provider_code = error_code

        error_info = self.AWS_ERROR_MAPPING.get(error_code)
        if error_info:
            error_class = CredentialError if error_info['category'] == ErrorCategory.CREDENTIAL else None
            if error_class:
                return error_class(
                    message=f"{error_info['message']}: {error_message}",
                    context=context,
                    cause=error,
                    suggestions=error_info['suggestions']
                )
            return ReconcileError(
                message=f"{error_info['message']}: {error_message}",
                category=error_info['category'],
                severity=ErrorSeverity.ERROR,
                context=context,
                cause=error,
                suggestions=error_info['suggestions']
            )

        return ReconcileError(
            message=f"AWS Error ({error_code}): {error_message}",
            category=ErrorCategory.CLOUD,
            severity=ErrorSeverity.ERROR,
            context=context,
            cause=error,
            suggestions=[f'AWS Request ID: {context.request_id}']
        )


# Global error handler instance
error_handler = ErrorHandler()
