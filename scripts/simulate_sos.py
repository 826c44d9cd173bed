"""Send test SOS reports to the relay, optionally resolving them as the demo operator."""

import argparse
import random
import requests

BACKEND_URL = "http://localhost:3000/api/v1"

DEFAULT_CENTER = (25.5788, 91.8933)


def login(email, password):
    resp = requests.post(f"{BACKEND_URL}/login", json={"email": email, "password": password}, timeout=10)
    resp.raise_for_status()
    return resp.json()["token"]


def send_sos(device_id, name, phone, lat, lng):
    payload = {"deviceId": device_id, "lat": lat, "lng": lng}
    if name:
        payload["name"] = name
    if phone:
        payload["phone"] = phone
    resp = requests.post(f"{BACKEND_URL}/sos", json=payload, timeout=10)
    print(f"🚨 SOS {device_id} @ {lat:.5f},{lng:.5f} → HTTP {resp.status_code}: {resp.json()}")
    return resp.json().get("event")


def resolve(event_id, token):
    resp = requests.post(f"{BACKEND_URL}/sos/{event_id}/resolve",
                         headers={"Authorization": f"Bearer {token}"}, timeout=10)
    print(f"✅ resolve #{event_id} → HTTP {resp.status_code}: {resp.json()}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Simulate field device SOS reports")
    parser.add_argument("--device", default="demo-device-1")
    parser.add_argument("--name", default=None)
    parser.add_argument("--phone", default=None)
    parser.add_argument("--count", type=int, default=1, help="Reports to send (repeats = follow-ups)")
    parser.add_argument("--resolve", action="store_true", help="Resolve the first report afterwards")
    parser.add_argument("--email", default="admin@sosrelay.local")
    parser.add_argument("--password", default="admin123")
    args = parser.parse_args()

    events = []
    for _ in range(args.count):
        lat = DEFAULT_CENTER[0] + (random.random() - 0.5) / 100
        lng = DEFAULT_CENTER[1] + (random.random() - 0.5) / 100
        event = send_sos(args.device, args.name, args.phone, lat, lng)
        if event:
            events.append(event)

    if args.resolve and events:
        resolve(events[0]["id"], login(args.email, args.password))
