# sosrelay/runtime.py
"""
Process-wide runtime objects: the event store and the broadcast hub.
Created once at startup, held on app.state, and handed to routes as
dependencies instead of living in module globals.
"""

from fastapi import FastAPI
from starlette.requests import HTTPConnection

from sosrelay.services.broadcast_hub import BroadcastHub
from sosrelay.services.event_store import EventStore


def init_runtime(app: FastAPI, store: EventStore = None, hub: BroadcastHub = None):
    """Attach a fresh store + hub to the app. Safe to call again (e.g. from tests)."""
    app.state.store = store or EventStore()
    app.state.hub = hub or BroadcastHub()


def get_store(conn: HTTPConnection) -> EventStore:
    """FastAPI dependency — the app's event store (HTTP and WebSocket routes)."""
    return conn.app.state.store


def get_hub(conn: HTTPConnection) -> BroadcastHub:
    """FastAPI dependency — the app's broadcast hub."""
    return conn.app.state.hub
