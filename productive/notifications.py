"""
Transient desktop notifications for Productive Cloud.

Uses notify-send (freedesktop compliant) when it is installed and falls
back to the log otherwise. Notifications never block and never raise;
sync failures surface here rather than as errors.
"""

import logging
import shutil
import subprocess

logger = logging.getLogger(__name__)


VALID_URGENCIES = ("low", "normal", "critical")
APP_NAME = "Productive Cloud"
MAX_NOTIFICATION_LENGTH = 200


def notify(title: str, message: str, urgency: str = "normal"):
    """
    Send a desktop notification.

    Args:
        title: Notification title
        message: Notification body
        urgency: One of "low", "normal", "critical"
    """
    if urgency not in VALID_URGENCIES:
        logger.warning(f"Invalid urgency '{urgency}', using 'normal'")
        urgency = "normal"

    if len(message) > MAX_NOTIFICATION_LENGTH:
        message = message[:MAX_NOTIFICATION_LENGTH] + "..."

    if not shutil.which("notify-send"):
        logger.info(f"[NOTIFY] {title}: {message}")
        return

    try:
        result = subprocess.run([
            "notify-send",
            "--urgency", urgency,
            "--app-name", APP_NAME,
            title,
            message
        ], capture_output=True, text=True, timeout=5)

        if result.returncode != 0:
            logger.warning(f"notify-send failed (exit {result.returncode}): {result.stderr}")
    except subprocess.TimeoutExpired:
        logger.warning("notify-send timed out")
    except OSError as e:
        logger.warning(f"Failed to run notify-send: {e}")


def notify_sync_failed(data_type: str, reason: str):
    """A dataset failed to sync and was queued for retry."""
    notify(APP_NAME, f"Could not sync {data_type}, will retry: {reason}", "low")


def notify_remote_updates(data_types: list[str]):
    """Local data was replaced by newer data from the cloud."""
    notify(APP_NAME, f"Data updated from cloud: {', '.join(data_types)}", "normal")


def notify_local_mode():
    """No backend configured; everything stays in local storage."""
    notify(APP_NAME, "Running in local storage mode", "low")
