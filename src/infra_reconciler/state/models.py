"""Tracked state models and the Terraform state document they are read from."""

import json
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

# Only the v4 state format (Terraform >= 0.12) is understood
SUPPORTED_STATE_VERSION = 4


class TrackedResourceState(BaseModel):
    """What the declarative engine believes it manages for one descriptor."""

    model_config = ConfigDict(frozen=True)

    logical_name: str = Field(..., description="Logical resource name")
    native_id: str = Field(..., description="Identifier recorded by the engine")
    address: str = Field(..., description="Engine address the entry was found at")
    last_known_attributes: Dict[str, Any] = Field(
        default_factory=dict, description="Attributes from the last engine refresh"
    )


class StateInstance(BaseModel):
    """One instance of a Terraform resource block."""

    index_key: Optional[Union[int, str]] = None
    attributes: Dict[str, Any] = Field(default_factory=dict)


class StateResource(BaseModel):
    """A resource block in a v4 state document."""

    module: Optional[str] = None
    mode: str
    type: str
    name: str
    instances: List[StateInstance] = Field(default_factory=list)

    @property
    def base_address(self) -> str:
        address = f"{self.type}.{self.name}"
        if self.mode == "data":
            address = f"data.{address}"
        if self.module:
            address = f"{self.module}.{address}"
        return address

    def instance_address(self, instance: StateInstance) -> str:
        """Address of one instance, e.g. ``aws_subnet.public[0]``."""
        if instance.index_key is None:
            return self.base_address
        return f"{self.base_address}[{json.dumps(instance.index_key)}]"


class StateDocument(BaseModel):
    """Subset of the Terraform v4 state format the reader relies on."""

    model_config = ConfigDict(extra="ignore")

    version: int
    terraform_version: Optional[str] = None
    serial: int = 0
    lineage: Optional[str] = None
    resources: List[StateResource] = Field(default_factory=list)

    def managed_instances(self):
        """Yield ``(address, attributes)`` for every managed resource instance."""
        for resource in self.resources:
            if resource.mode != "managed":
                continue
            for instance in resource.instances:
                yield resource.instance_address(instance), instance.attributes
