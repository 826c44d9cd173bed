"""
Watch the relay's live stream from a terminal.
Prints every message plus the recent-activity and follow-up views.

Usage: python scripts/watch_sos.py --url ws://localhost:3000/ws [--token TOKEN]
"""

import argparse
import asyncio
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from sosrelay.client.viewer import SOSViewer
from sosrelay.errors import SOSRelayError
from sosrelay.schemas.messages import SOSCreatedMessage, SOSResolvedMessage, SOSUnresolvedMessage


def print_views(viewer):
    mirror = viewer.reconciler
    print(f"\n📊 {mirror.stats()}")
    print("🕑 Recent activity:")
    for entry in mirror.recent_activity():
        name = entry.device.name if entry.device else entry.event.device_id
        state = "resolved" if entry.event.resolved else "SOS"
        print(f"   {name:<24} #{entry.event.id:<5} {state}")
    groups = mirror.follow_up_groups()
    if groups:
        print("🛰️  Follow-up alerts:")
        for g in groups:
            name = g.device.name if g.device else g.device_id
            print(f"   {name:<24} {g.label:<10} latest #{g.latest_follow_up.id}")


async def main(url, token):
    viewer = None

    def on_message(message):
        print(f"📥 {message.type}")
        if isinstance(message, (SOSCreatedMessage, SOSResolvedMessage, SOSUnresolvedMessage)):
            print_views(viewer)

    viewer = SOSViewer(url, token=token, on_message=on_message)
    try:
        print(f"📋 Loaded {await viewer.load_recent()} recent events")
        print_views(viewer)
    except SOSRelayError as e:
        print(f"⚠️  Could not load recent events: {e}")
    viewer.start()
    await viewer.controller.wait()
    print(f"🛑 Stopped: {viewer.status.value}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Watch live SOS updates")
    parser.add_argument("--url", default="ws://localhost:3000/ws")
    parser.add_argument("--token", default=None)
    args = parser.parse_args()
    asyncio.run(main(args.url, args.token))
