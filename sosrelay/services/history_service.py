# sosrelay/services/history_service.py
"""
Synthetic movement trail for a device.

Devices only report on SOS, so there is no stored track. Viewers get a trail of
HISTORY_POINTS + 1 samples, one per minute, drifting towards the device's
current position and ending exactly on it.
"""

import random
import time
from typing import List, Optional

from sosrelay.config import settings
from sosrelay.models import Device
from sosrelay.schemas.messages import HistoryPoint

_SPREAD_DEG = 0.01


def synthetic_history(device: Device, points: int = None, now_ms: Optional[int] = None,
                      rng: Optional[random.Random] = None) -> List[HistoryPoint]:
    points = points or settings.HISTORY_POINTS
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    rng = rng or random

    trail = []
    for i in range(points, -1, -1):
        weight = i / points
        trail.append(HistoryPoint(
            lat=device.lat + (rng.random() - 0.5) * _SPREAD_DEG * weight,
            lng=device.lng + (rng.random() - 0.5) * _SPREAD_DEG * weight,
            time=now_ms - i * 60_000,
        ))
    return trail
