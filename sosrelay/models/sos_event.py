"""
SOS event record — one distress report from a device.
resolved_at / resolved_by are only set while the event is resolved.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class SOSEvent(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: int
    device_id: str
    time: int                 # ms since epoch
    lat: float
    lng: float
    resolved: bool = False
    resolved_at: Optional[int] = None
    resolved_by: Optional[str] = None

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def __repr__(self):
        return f"<SOSEvent {self.id} device={self.device_id} resolved={self.resolved}>"
