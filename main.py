"""Family Plan reminder service - runs the daily push sweeps.

    python main.py                     # run until SIGINT/SIGTERM
    python main.py --run-now morning   # run one sweep for all households and exit
"""

import argparse
import asyncio
import contextlib
import signal
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from domains.household import store
from domains.household.types import ReminderKind
from jobs import register_household_reminders
from logger import logger


async def run(run_now: Optional[str] = None) -> None:
    """Start the scheduler and block until asked to stop."""
    scheduler = AsyncIOScheduler()
    reminders = register_household_reminders(scheduler)

    if run_now:
        report = await reminders.run_sweep(ReminderKind(run_now))
        print(report.summary())
        store.close()
        return

    scheduler.start()
    logger.info(f"Scheduler started with {len(scheduler.get_jobs())} jobs")

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # add_signal_handler is not available on Windows event loops
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    try:
        await stop.wait()
    finally:
        logger.info("Shutting down reminder service...")
        await reminders.shutdown()
        store.close()


def main():
    """Entry point."""
    parser = argparse.ArgumentParser(description="Family Plan reminder service")
    parser.add_argument(
        "--run-now",
        choices=[kind.value for kind in ReminderKind],
        help="Run one sweep immediately for every household and exit",
    )
    args = parser.parse_args()

    logger.info("Starting Family Plan reminder service...")
    asyncio.run(run(run_now=args.run_now))


if __name__ == "__main__":
    main()
