#!/usr/bin/env python3
"""
Demo script: run the bundled signup workflow and stream its trace over WebSocket

The last step sends a welcome email, so point the server at an SMTP relay
first (APIFLOW_SMTP_HOST, APIFLOW_SMTP_PORT, APIFLOW_SMTP_USER,
APIFLOW_SMTP_PASSWORD). Without one the run fails at the email step after the
user has already been stored.
"""

import asyncio
import json
import sys
import uuid

import requests
import websockets

BASE_URL = "http://localhost:8000"
API = f"{BASE_URL}/api/v1"

PHASE_MARKERS = {
    "started": "->",
    "finished": "ok",
    "error": "!!",
}


async def websocket_client(run_id):
    """Connect to the execution WebSocket and print trace entries"""
    uri = f"ws://localhost:8000/api/v1/ws/executions/{run_id}"
    print(f"Connecting to WebSocket: {uri}")

    async with websockets.connect(uri) as websocket:
        while True:
            try:
                data = json.loads(await websocket.recv())
            except websockets.exceptions.ConnectionClosed:
                print("WebSocket connection closed")
                break

            if data["type"] == "connected":
                print(data["message"])

            elif data["type"] == "log":
                marker = PHASE_MARKERS.get(data["phase"], "..")
                line = f"[{marker}] step {data['stepIndex']} {data['stepKind']}"
                if data.get("durationMs") is not None:
                    line += f" ({data['durationMs']} ms)"
                print(line)
                if data.get("error"):
                    print(f"     error: {data['error']['message']}")

            elif data["type"] == "status":
                print(f"Execution status: {data['status']}")
                break

            elif data["type"] == "waiting":
                print(data["message"])


def start_signup():
    """Run the signup workflow via REST and return the run id"""
    email = f"demo-{uuid.uuid4().hex[:8]}@example.com"
    response = requests.post(f"{API}/demo/signup", json={
        "name": "Demo User",
        "email": email,
        "password": "demo-password",
    })

    if response.status_code != 200:
        print(f"Failed to run workflow: {response.text}")
        return None

    run = response.json()
    result = run["result"]
    print(f"Run {run['runId']} finished with ok={result['ok']}")
    if not result["ok"]:
        print(f"Failed at step {result['failedStep']}: {result['error']}")
        if (result.get("errorDetails") or {}).get("type") == "EmailError":
            print("Is an SMTP relay configured? See APIFLOW_SMTP_HOST.")
    return run["runId"]


def main():
    try:
        requests.get(f"{BASE_URL}/health", timeout=2)
    except requests.exceptions.ConnectionError:
        print("Server not running. Start it with: python -m apiflow.main")
        sys.exit(1)

    run_id = start_signup()
    if run_id:
        asyncio.run(websocket_client(run_id))


if __name__ == "__main__":
    main()
