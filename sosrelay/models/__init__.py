# SOS Relay — ledger records
# Shared by the relay's event store and the viewer's reconciler mirror

from sosrelay.models.device import Device          # noqa
from sosrelay.models.sos_event import SOSEvent      # noqa
from sosrelay.models.actor import Actor, GUEST      # noqa
