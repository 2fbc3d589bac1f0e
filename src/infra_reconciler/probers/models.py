"""Live state snapshot models."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class LiveResourceState(BaseModel):
    """What the cloud provider reported for one descriptor at probe time."""

    model_config = ConfigDict(frozen=True)

    logical_name: str = Field(..., description="Logical resource name")
    exists: bool = Field(..., description="Whether the provider reports the resource")
    native_id: Optional[str] = Field(None, description="Provider-assigned identifier")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Attribute snapshot")
    transitional: bool = Field(
        False, description="Provider reports the resource as being deleted"
    )
    probed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def absent(cls, logical_name: str) -> "LiveResourceState":
        """State for a resource the provider does not know about."""
        return cls(logical_name=logical_name, exists=False)

    @classmethod
    def present(
        cls,
        logical_name: str,
        native_id: str,
        attributes: Optional[Dict[str, Any]] = None,
        transitional: bool = False
    ) -> "LiveResourceState":
        """State for a resource the provider reports."""
        return cls(
            logical_name=logical_name,
            exists=True,
            native_id=native_id,
            attributes=attributes or {},
            transitional=transitional
        )
