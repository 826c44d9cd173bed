"""
Device record — one field unit, keyed by its opaque device id.
Held by the event store on the relay and by the reconciler mirror on viewers.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class Device(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    phone: str = ""
    lat: float
    lng: float
    sos_active: bool = False
    last_seen: int            # ms since epoch

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def __repr__(self):
        return f"<Device {self.id} sos={self.sos_active} @ {self.lat},{self.lng}>"
