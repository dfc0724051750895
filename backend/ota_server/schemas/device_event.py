from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ota_server.services.update_engine.identifiers import is_valid_bundle_id, normalize_bundle_id


class DeviceEventIn(BaseModel):
    """Lifecycle report sent by the device SDK, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    device_id: str = Field(min_length=1, max_length=255)
    bundle_id: str
    event_type: Literal["PROMOTED", "RECOVERED"]
    platform: Literal["ios", "android"]
    app_version: str | None = Field(default=None, max_length=64)
    channel: str = Field(min_length=1, max_length=120)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("bundle_id")
    @classmethod
    def _check_bundle_id(cls, value: str) -> str:
        if not is_valid_bundle_id(value):
            raise ValueError("bundle_id must be a UUID")
        return normalize_bundle_id(value)


class RolloutStatsOut(BaseModel):
    bundle_id: str
    total_devices: int
    promoted_count: int
    recovered_count: int
    success_rate: float
