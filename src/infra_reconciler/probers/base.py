"""Base prober interface with retry, timeout and bounded concurrency."""

from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Dict, Iterable, Union

from infra_reconciler.catalog.models import ResourceDescriptor
from infra_reconciler.probers.models import LiveResourceState
from infra_reconciler.utils.errors import (
    ConfigurationError,
    CredentialError,
    ErrorContext,
    NotFound,
    ProbeFailure,
    error_handler,
)
from infra_reconciler.utils.logging import get_logger
from infra_reconciler.utils.retry import RetryStrategy

logger = get_logger(__name__)

ProbeOutcome = Union[LiveResourceState, ProbeFailure]


@dataclass(frozen=True)
class ProbeSettings:
    """Timeout and retry policy applied to every probe."""
    timeout: float = 30.0  # seconds per cloud call
    max_attempts: int = 3
    base_delay: float = 1.0
    max_workers: int = 4


class BaseProber(ABC):
    """Base class for live state probers.

    Subclasses implement ``lookup`` for a single cloud call sequence: return
    a ``LiveResourceState`` or raise ``NotFound`` / a provider exception.
    ``probe`` adds the not-found mapping, retries for transient failures and
    the escalation to ``ProbeFailure``.
    """

    def __init__(self, settings: ProbeSettings = ProbeSettings(), retry: RetryStrategy = None):
        """Initialize prober.

        Args:
            settings: Timeout/retry/concurrency policy
            retry: Retry strategy (built from settings when omitted)
        """
        self.settings = settings
        self.retry = retry or RetryStrategy(
            max_attempts=settings.max_attempts,
            base_delay=settings.base_delay
        )
        self.logger = get_logger(self.__class__.__module__)

    @abstractmethod
    def lookup(self, descriptor: ResourceDescriptor) -> LiveResourceState:
        """Query the provider once for a descriptor.

        Args:
            descriptor: Rendered descriptor (``expected_id`` is set)

        Returns:
            LiveResourceState for an existing resource

        Raises:
            NotFound: If the resource does not exist
        """

    def probe(self, descriptor: ResourceDescriptor) -> LiveResourceState:
        """Probe the live state of one resource.

        Args:
            descriptor: Rendered descriptor

        Returns:
            LiveResourceState (``exists=False`` when not found)

        Raises:
            ProbeFailure: If existence could not be determined
            CredentialError: If the provider rejected the credentials
        """
        context = ErrorContext(
            resource_id=descriptor.logical_name,
            resource_kind=descriptor.kind.value,
            operation='probe',
            native_id=descriptor.expected_id
        )

        attempts = 0

        def attempt() -> LiveResourceState:
            nonlocal attempts
            attempts += 1
            try:
                return self.lookup(descriptor)
            except NotFound:
                raise
            except Exception as e:
                # Classify so RetryStrategy sees NotFound/Transient uniformly
                raise error_handler.handle_exception(e, ErrorContext(**vars(context))) from e

        try:
            state = self.retry.execute_with_retry(attempt)
        except NotFound:
            self.logger.debug(f"{descriptor.logical_name}: not found")
            return LiveResourceState.absent(descriptor.logical_name)
        except (CredentialError, ConfigurationError):
            raise
        except Exception as e:
            context.attempts = attempts
            raise ProbeFailure(
                f"Could not probe {descriptor.label} after {attempts} attempt(s): {e}",
                context=context,
                cause=e.cause if getattr(e, 'cause', None) else e
            ) from e

        if state.transitional:
            self.logger.warning(
                f"{descriptor.logical_name}: provider reports resource as being deleted; "
                f"treating it as present for this run"
            )
        return state

    def probe_all(self, descriptors: Iterable[ResourceDescriptor]) -> Dict[str, ProbeOutcome]:
        """Probe many resources concurrently on a bounded worker pool.

        Probes are read-only and independent, so completion order does not
        matter; the result is keyed by logical name.

        Returns:
            Mapping of logical name to LiveResourceState or ProbeFailure

        Raises:
            CredentialError: If any probe hit an authentication failure
        """
        descriptors = list(descriptors)
        outcomes: Dict[str, ProbeOutcome] = {}
        workers = max(1, min(self.settings.max_workers, len(descriptors) or 1))

        self.logger.info(f"Probing {len(descriptors)} resources ({workers} workers)...")

        with ThreadPoolExecutor(max_workers=workers) as executor:
            future_to_name = {
                executor.submit(self.probe, descriptor): descriptor.logical_name
                for descriptor in descriptors
            }

            for future in as_completed(future_to_name):
                name = future_to_name[future]
                try:
                    outcomes[name] = future.result()
                except ProbeFailure as e:
                    self.logger.error(f"Probe failed for {name}: {e.message}")
                    outcomes[name] = e
                except (CredentialError, ConfigurationError):
                    # Run is aborting: drop probes that have not started yet
                    executor.shutdown(wait=False, cancel_futures=True)
                    raise

        found = sum(1 for o in outcomes.values() if isinstance(o, LiveResourceState) and o.exists)
        self.logger.info(f"Probing complete: {found}/{len(descriptors)} resources found")
        return outcomes


class StaticProber(BaseProber):
    """Prober backed by a fixed mapping, for offline planning and tests.

    Values may be a native ID string, a ``LiveResourceState``, ``None``
    (absent) or an exception instance raised on every lookup.
    """

    def __init__(self, responses: Dict[str, object], settings: ProbeSettings = ProbeSettings(), **kwargs):
        super().__init__(settings, **kwargs)
        self.responses = dict(responses)
        self.calls: Dict[str, int] = {}

    def lookup(self, descriptor: ResourceDescriptor) -> LiveResourceState:
        name = descriptor.logical_name
        self.calls[name] = self.calls.get(name, 0) + 1

        response = self.responses.get(name)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, LiveResourceState):
            if not response.exists:
                raise NotFound(f"{name} not found")
            return response
        if response is None:
            raise NotFound(f"{name} not found")
        return LiveResourceState.present(name, str(response))
