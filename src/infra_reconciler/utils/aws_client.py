"""AWS client management and session handling."""

import threading
import boto3
from botocore.config import Config
from typing import Optional, Dict, Any
from dataclasses import dataclass
from infra_reconciler.utils.errors import ErrorContext, error_handler
from infra_reconciler.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class AWSCredentials:
    """AWS credential information."""
    account_id: str
    user_arn: str
    user_id: str
    region: str
    profile: Optional[str] = None


class AWSClientManager:
    """Manages boto3 sessions and clients for read-only probing."""

    def __init__(
        self,
        profile: Optional[str] = None,
        region: Optional[str] = None,
        timeout: float = 30.0,
        max_pool_connections: int = 10,
        session: Optional[boto3.Session] = None
    ):
        """Initialize AWS client manager.

        Args:
            profile: AWS profile name to use
            region: AWS region to use
            timeout: Connect and read timeout for every API call, in seconds
            max_pool_connections: Maximum number of connections in the connection pool
            session: Pre-built boto3 session (overrides profile/region)
        """
        self.profile = profile
        self.region = region
        self._session = session
        self._clients: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._credentials: Optional[AWSCredentials] = None

        # Retries are owned by RetryStrategy, so botocore makes a single attempt
        self._boto_config = Config(
            max_pool_connections=max_pool_connections,
            retries={
                'mode': 'standard',
                'max_attempts': 1
            },
            connect_timeout=timeout,
            read_timeout=timeout
        )

    @property
    def session(self) -> boto3.Session:
        """Get or create boto3 session.

        Returns:
            Configured boto3 session
        """
        if self._session is None:
            kwargs = {}
            if self.profile:
                kwargs['profile_name'] = self.profile
            if self.region:
                kwargs['region_name'] = self.region

            self._session = boto3.Session(**kwargs)
            logger.info(f"Created AWS session - Region: {self._session.region_name}, "
                        f"Profile: {self.profile or 'default'}")

        return self._session

    def get_client(self, service_name: str):
        """Get a cached boto3 client for a service.

        boto3 sessions are not thread-safe, so client creation is serialized;
        the clients themselves are safe to share between probe workers.

        Args:
            service_name: AWS service name (e.g., 'iam', 'ec2')

        Returns:
            Boto3 client for the service
        """
        with self._lock:
            if service_name not in self._clients:
                self._clients[service_name] = self.session.client(
                    service_name,
                    region_name=self.region or self.session.region_name,
                    config=self._boto_config
                )
                logger.debug(f"Created {service_name} client")
            return self._clients[service_name]

    def get_credentials(self) -> AWSCredentials:
        """Resolve the caller identity (account ID feeds the naming context).

        Returns:
            AWSCredentials for the active session

        Raises:
            CredentialError: If no usable credentials are configured
        """
        if self._credentials is None:
            try:
                identity = self.get_client('sts').get_caller_identity()
            except Exception as e:
                raise error_handler.handle_exception(
                    e, ErrorContext(operation='sts:GetCallerIdentity')
                ) from e

            self._credentials = AWSCredentials(
                account_id=identity['Account'],
                user_arn=identity['Arn'],
                user_id=identity['UserId'],
                region=self.region or self.session.region_name,
                profile=self.profile
            )
            logger.info(f"Authenticated as {self._credentials.user_arn}")

        return self._credentials
