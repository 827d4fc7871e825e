"""
Check-in Simulation Script

Simulates many devices checking in at once against the venue emulator.
Each device gets its own position, its own session file and a random
resolution method (QR, GPS or typed table number).

Start the emulator first:
    uvicorn table_checkin.main:app --port 5000

Then run from project root:
    python scripts/simulate.py --devices 30

Author: Your Name
Version: 1.0.0
"""

import argparse
import asyncio
import json
import random
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any

import httpx

from table_checkin.core.config import get_settings, setup_logging
from table_checkin.exceptions import CheckinError
from table_checkin.services.backend.http import HttpBackendClient
from table_checkin.services.checkin import build_checkin_flow
from table_checkin.services.geo.mock import MockGeoSampler
from table_checkin.services.session.store import JsonFileSessionStore

# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Configuration
API_BASE_URL = "http://localhost:5000"
TOTAL_DEVICES = 30
DEVICE_DIR = Path("data") / "devices"

FIRST_NAMES = ["John", "Jane", "Mike", "Sarah", "Tom", "Emma", "David", "Lisa", "Chris", "Amy"]
METHODS = ["qr", "geo", "manual"]


async def fetch_tables(client: httpx.AsyncClient, latitude: float, longitude: float) -> list[dict]:
    """Ask the emulator for every table around the venue centre."""
    response = await client.get(
        f"{API_BASE_URL}/tables/nearby",
        params={"latitude": latitude, "longitude": longitude, "radius": 200},
    )
    response.raise_for_status()
    return [item["table"] for item in response.json()["data"]["tables"]]


async def run_device(device_num: int, table: dict, method: str) -> dict[str, Any]:
    """Drive one device through resolution and session establishment."""
    settings = get_settings().model_copy(update={"confirm_delay_seconds": 0.0})
    longitude, latitude = table["location"]["coordinates"]

    sampler = MockGeoSampler(latitude=latitude, longitude=longitude, accuracy_m=5.0, jitter_m=0.3)
    store = JsonFileSessionStore(DEVICE_DIR / f"device_{device_num:03d}.json")
    store.clear()

    start_time = time.time()
    async with HttpBackendClient(API_BASE_URL, timeout=30.0) as backend:
        flow = build_checkin_flow(backend=backend, sampler=sampler, store=store, settings=settings)
        try:
            if method == "qr":
                payload = json.dumps({"tableId": table["_id"], "tableNumber": table["number"]})
                decision = await flow.resolve_qr(payload)
            elif method == "geo":
                decision = await flow.resolve_geo()
            else:
                decision = await flow.resolve_manual(str(table["number"]))

            selected = False
            if not decision.is_confirmed:
                # Seated customers know their table; pick it from the list
                flow.select_table(table["_id"])
                selected = True

            handoff = await flow.establish(random.choice(FIRST_NAMES))
        except CheckinError as e:
            return {
                "device": device_num,
                "success": False,
                "method": method,
                "error": f"{e.code}: {e.message}"[:100],
                "time": round(time.time() - start_time, 3),
            }

    return {
        "device": device_num,
        "success": True,
        "method": method,
        "table": handoff.table_number,
        "expected_table": table["number"],
        "selected": selected,
        "warnings": len(handoff.warnings),
        "time": round(time.time() - start_time, 3),
    }


async def run_simulation(num_devices: int = TOTAL_DEVICES) -> dict[str, Any]:
    """
    Run the check-in simulation.

    Args:
        num_devices: Number of concurrent devices
    """
    print("=" * 70)
    print("🔥 CHECK-IN SIMULATION - CONCURRENT DEVICES")
    print("=" * 70)
    print(f"📱 Devices: {num_devices}")
    print(f"🎯 Target: {API_BASE_URL}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    async with httpx.AsyncClient() as client:
        health = await client.get(f"{API_BASE_URL}/health")
        health.raise_for_status()
        print(f"\n✅ Emulator: {health.json().get('status')}")
        tables = await fetch_tables(client, 40.7128, -74.0060)

    if not tables:
        print("❌ Emulator has no tables")
        return {"total": num_devices, "successful": 0, "failed": num_devices}

    DEVICE_DIR.mkdir(parents=True, exist_ok=True)
    print(f"🪑 Tables: {len(tables)}\n🚀 Checking in...\n")

    start_time = time.time()
    tasks = [
        run_device(i + 1, random.choice(tables), random.choice(METHODS))
        for i in range(num_devices)
    ]
    results = await asyncio.gather(*tasks)
    total_time = round(time.time() - start_time, 2)

    successful = [r for r in results if r["success"]]
    failed = [r for r in results if not r["success"]]
    wrong_table = [r for r in successful if r["table"] != r["expected_table"]]

    print("\n" + "=" * 70)
    print("📊 SIMULATION RESULTS")
    print("=" * 70)
    print(f"\n✅ Seated: {len(successful)}/{num_devices}")
    print(f"❌ Failed: {len(failed)}/{num_devices}")
    print(f"⏱️  Total Time: {total_time}s")

    for method in METHODS:
        by_method = [r for r in results if r["method"] == method]
        if by_method:
            ok = len([r for r in by_method if r["success"]])
            print(f"   {method:>6}: {ok}/{len(by_method)} seated")

    if successful:
        times = [r["time"] for r in successful]
        print(f"\n📈 Performance Metrics:")
        print(f"   Average: {round(sum(times) / len(times), 3)}s")
        print(f"   Fastest: {min(times)}s")
        print(f"   Slowest: {max(times)}s")
        print(f"   Needed selection: {len([r for r in successful if r['selected']])}")
        print(f"   With warnings: {len([r for r in successful if r['warnings']])}")
        print(f"   Wrong table: {len(wrong_table)}")

    if failed:
        print(f"\n⚠️  Failure Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Device #{f['device']} [{f['method']}]: {f['error']}")

    print("\n" + "=" * 70)
    print("🔍 NEXT: python scripts/verify.py")
    print("=" * 70)

    return {
        "total": num_devices,
        "successful": len(successful),
        "failed": len(failed),
        "total_time": total_time,
        "results": results,
    }


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Check-in Simulation Script")
    parser.add_argument("--devices", type=int, default=TOTAL_DEVICES, help="Number of devices")
    parser.add_argument("--url", default=API_BASE_URL, help="Emulator base URL")
    args = parser.parse_args()

    API_BASE_URL = args.url
    setup_logging()
    asyncio.run(run_simulation(num_devices=args.devices))
