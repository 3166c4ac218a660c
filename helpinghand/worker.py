"""
Daily job that posts one summary notification for cleaning tasks that are due.

Run as `python -m helpinghand.worker` (loops) or with `--once` from cron.
"""

from __future__ import annotations

import argparse
import logging
import time
from typing import List, Optional, Sequence

from helpinghand.config import get_settings
from helpinghand.db import CleaningReminderDao
from helpinghand.dependencies import get_local_db, get_notifier
from helpinghand.notifications import Notification, Notifier
from shared.constants import (
    CLEANING_CHANNEL_ID,
    CLEANING_NOTIFICATION_ID,
    CLEANING_NOTIFICATION_TITLE,
)
from shared.types import CleaningReminder
from shared.utils import today_epoch_day as current_epoch_day

logger = logging.getLogger(__name__)


def build_due_notification(due: List[CleaningReminder]) -> Optional[Notification]:
    if not due:
        return None
    first = due[0].name
    if len(due) == 1:
        text = f"{first} is due today."
    else:
        text = f"{first} and {len(due) - 1} more tasks are due today."
    return Notification(
        channel_id=CLEANING_CHANNEL_ID,
        notification_id=CLEANING_NOTIFICATION_ID,
        title=CLEANING_NOTIFICATION_TITLE,
        text=text,
    )


def check_due_reminders(
    dao: CleaningReminderDao,
    notifier: Notifier,
    today_epoch_day: Optional[int] = None,
) -> int:
    """
    Posts a summary for every reminder due today or earlier.

    Returns:
        int: Number of due reminders (0 means nothing was posted).
    """
    if today_epoch_day is None:
        today_epoch_day = current_epoch_day()
    due = dao.get_due(today_epoch_day)
    notification = build_due_notification(due)
    if notification is None:
        logger.info("No cleaning reminders due on epoch day %d", today_epoch_day)
        return 0
    notifier.notify(notification)
    logger.info("Posted reminder notification for %d due tasks", len(due))
    return len(due)


def run_once() -> int:
    return check_due_reminders(get_local_db().cleaning_reminders, get_notifier())


def run_loop(interval_seconds: Optional[float] = None) -> None:
    """
    Checks due reminders once per interval. Intended to be run under
    systemd/supervisor.
    """
    interval = interval_seconds or get_settings().reminder_interval_seconds
    while True:
        try:
            run_once()
        except Exception:
            logger.exception("Reminder check failed")
        time.sleep(interval)


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Cleaning reminder notifier")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Check due reminders once and exit.",
    )
    parser.add_argument(
        "--interval-seconds",
        type=float,
        default=None,
        help="Seconds between checks (defaults to HELPINGHAND_REMINDER_INTERVAL_SECONDS).",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=get_settings().log_level,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
    )

    if args.once:
        run_once()
        return
    run_loop(args.interval_seconds)


if __name__ == "__main__":
    main()
