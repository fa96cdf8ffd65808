# run_scheduled_update.py
# Runs the scheduled pipeline once against the configured Firestore, schedule
# source and device, prints the run result and exits non-zero on failure.
# Usage: python tools/run_scheduled_update.py
import asyncio
import json
import sys

from dotenv import load_dotenv

# Load environment variables from a .env file before the service reads its settings
load_dotenv()

from display_update_service.app.utils.logging_config import setup_logging

setup_logging()

from display_update_service.app.firestore_client import get_firestore_client
from display_update_service.app.main import (
    build_device_pusher,
    build_orchestrator,
    build_schedule_source,
)


async def main() -> int:
    source = build_schedule_source()
    pusher = build_device_pusher()
    try:
        orchestrator = build_orchestrator(get_firestore_client(), source, pusher)
        result = await orchestrator.run_scheduled()
    finally:
        await pusher.close()
        if hasattr(source, "close"):
            await source.close()

    print("----------------------------------------------------")
    print("Scheduled update " + ("succeeded" if result.success else "FAILED"))
    print("----------------------------------------------------")
    print(json.dumps(result.summary(), indent=2))
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
