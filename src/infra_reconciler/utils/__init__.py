"""Utility modules for logging, error handling, retries and AWS clients."""

from infra_reconciler.utils.aws_client import AWSClientManager, AWSCredentials
from infra_reconciler.utils.retry import RetryStrategy
from infra_reconciler.utils.errors import (
    ErrorCategory,
    ErrorSeverity,
    ErrorContext,
    ReconcileError,
    NotFound,
    TransientProbeFailure,
    ProbeFailure,
    ConfigurationError,
    CredentialError,
    ExecutionFailure,
    ErrorHandler,
    error_handler
)
from infra_reconciler.utils.logging import get_logger, setup_logging, LogContext

__all__ = [
    # AWS Client
    'AWSClientManager',
    'AWSCredentials',

    # Retry
    'RetryStrategy',

    # Errors
    'ErrorCategory',
    'ErrorSeverity',
    'ErrorContext',
    'ReconcileError',
    'NotFound',
    'TransientProbeFailure',
    'ProbeFailure',
    'ConfigurationError',
    'CredentialError',
    'ExecutionFailure',
    'ErrorHandler',
    'error_handler',

    # Logging
    'get_logger',
    'setup_logging',
    'LogContext',
]
