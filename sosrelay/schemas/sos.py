from pydantic import BaseModel
from typing import List, Optional

from sosrelay.models import Device, SOSEvent


class SOSAcceptedOut(BaseModel):
    ok: bool = True
    event: SOSEvent


class SOSChangeOut(BaseModel):
    ok: bool = True
    event: SOSEvent
    device: Device


class SOSRowOut(BaseModel):
    event: SOSEvent
    device: Optional[Device] = None


class SOSListOut(BaseModel):
    rows: List[SOSRowOut]
