"""
LifeOS Reminders — Entry Point.

`python main.py` serves the job endpoints over HTTP.
`python main.py run <job>` runs one job once (daily-reminder, weekly-review,
time-block-reminder) and prints its result as JSON.
"""

import asyncio
import json
import logging
import sys

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

from src.config import settings


def _run_once(job_name: str) -> int:
    from src.adapters.channel_factory import create_channels
    from src.core.scheduler import JOBS
    from src.data.db import open_store

    if job_name not in JOBS:
        print(f"Unknown job {job_name!r}. Choose from: {', '.join(JOBS)}", file=sys.stderr)
        return 2

    store = open_store()
    result = asyncio.run(JOBS[job_name](store, create_channels(store)))
    print(json.dumps(result.to_response()))
    return 0


def main() -> None:
    if len(sys.argv) >= 3 and sys.argv[1] == "run":
        sys.exit(_run_once(sys.argv[2]))

    import uvicorn

    from src.api.app import create_app

    uvicorn.run(create_app(), host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    main()
