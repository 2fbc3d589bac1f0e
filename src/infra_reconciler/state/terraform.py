"""Tracked State Reader for Terraform state."""

import json
from pathlib import Path
from typing import Dict, Optional

from pydantic import ValidationError

from infra_reconciler.catalog.catalog import ResourceCatalog
from infra_reconciler.engine.terraform import TerraformEngine
from infra_reconciler.state.models import (
    SUPPORTED_STATE_VERSION,
    StateDocument,
    TrackedResourceState,
)
from infra_reconciler.utils.errors import ConfigurationError, ErrorContext
from infra_reconciler.utils.logging import get_logger

logger = get_logger(__name__)


class TerraformStateReader:
    """Reads what Terraform currently tracks for the catalog's descriptors.

    The state comes from a local ``terraform.tfstate`` file when ``state_path``
    is given, otherwise from ``terraform state pull`` (which also covers
    remote backends).
    """

    def __init__(
        self,
        catalog: ResourceCatalog,
        state_path: Optional[Path] = None,
        engine: Optional[TerraformEngine] = None
    ):
        if state_path is None and engine is None:
            raise ConfigurationError("TerraformStateReader needs a state path or an engine")
        self.catalog = catalog
        self.state_path = Path(state_path) if state_path else None
        self.engine = engine

    def _load_text(self) -> Optional[str]:
        if self.state_path is None:
            return self.engine.pull_state()

        if not self.state_path.exists():
            logger.info(f"No state file at {self.state_path}; nothing is tracked yet")
            return None

        text = self.state_path.read_text(encoding="utf-8")
        if not text.strip():
            # An interrupted write can leave a 0-byte file behind
            logger.warning(f"State file {self.state_path} is empty; treating it as missing")
            return None
        return text

    def read_tracked(self) -> Dict[str, TrackedResourceState]:
        """Read tracked resources keyed by logical name.

        Returns:
            Tracked states for descriptors found in state; ``{}`` when there
            is no state yet

        Raises:
            ConfigurationError: If the state is malformed or of an
                unsupported version
        """
        text = self._load_text()
        if text is None:
            return {}

        source = str(self.state_path) if self.state_path else "terraform state pull"

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f"Failed to parse state from {source}: {e}",
                cause=e,
                suggestions=["Restore the state from its backend's version history"]
            )

        if not isinstance(data, dict):
            raise ConfigurationError(f"State from {source} is not a JSON object")

        version = data.get("version")
        if version != SUPPORTED_STATE_VERSION:
            raise ConfigurationError(
                f"Unsupported state version {version!r} in {source} "
                f"(expected {SUPPORTED_STATE_VERSION})"
            )

        try:
            document = StateDocument.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Malformed state in {source}: {e}", cause=e)

        by_address = self.catalog.by_address()
        tracked: Dict[str, TrackedResourceState] = {}

        for address, attributes in document.managed_instances():
            descriptor = by_address.get(address)
            if descriptor is None:
                continue

            native_id = attributes.get("id")
            if not native_id:
                raise ConfigurationError(
                    f"State entry {address} has no id attribute",
                    context=ErrorContext(resource_id=descriptor.logical_name)
                )

            tracked[descriptor.logical_name] = TrackedResourceState(
                logical_name=descriptor.logical_name,
                native_id=str(native_id),
                address=address,
                last_known_attributes=attributes
            )

        logger.info(
            f"Read state serial {document.serial}: {len(tracked)} of "
            f"{len(self.catalog)} catalog resources tracked"
        )
        return tracked
