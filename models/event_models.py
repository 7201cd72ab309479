"""
Raw device event and data API models.
"""
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from event_query.timeutils import to_epoch_ms


class RawEvent(BaseModel):
    """
    Model for a raw device event as delivered by the upstream data API.

    Unknown type-specific fields are kept as extras. ``time`` and
    ``deviceTime`` are coerced to epoch milliseconds.
    """
    model_config = ConfigDict(extra="allow")

    id: str = Field(min_length=1, description="Unique event id")
    type: str = Field(min_length=1, description="Event type tag, e.g. cbg, smbg, basal")
    time: int = Field(description="Absolute UTC instant in epoch milliseconds")
    deviceTime: Optional[int] = Field(default=None, description="Device-local wall time read as UTC, epoch ms")
    timezoneOffset: Optional[float] = Field(default=None, allow_inf_nan=False, description="Minutes east of UTC at the device")
    conversionOffset: Optional[float] = Field(default=None, allow_inf_nan=False, description="Clock drift correction in ms")

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("time", mode="before")
    @classmethod
    def _parse_time(cls, value: Any) -> int:
        parsed = to_epoch_ms(value)
        if parsed is None:
            raise ValueError(f"unparseable time {value!r}")
        return parsed

    @field_validator("deviceTime", mode="before")
    @classmethod
    def _parse_device_time(cls, value: Any) -> Optional[int]:
        return to_epoch_ms(value)

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class DataRequest(BaseModel):
    """
    Request model for the device data API.
    """
    userId: str = Field(description="User whose device data is requested")
    startDate: Optional[str] = Field(default=None, description="Inclusive ISO start date")
    endDate: Optional[str] = Field(default=None, description="Exclusive ISO end date")
    types: Optional[List[str]] = Field(default=None, description="Event types to fetch")


class DataResponse(BaseModel):
    """
    Model for the device data API envelope.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    code: Optional[int] = Field(default=None, description="Service status code")
    data: Optional[List[Any]] = Field(default=None, description="Raw device events")
