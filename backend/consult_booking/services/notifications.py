"""
backend/consult_booking/services/notifications.py

Fire-and-forget booking notifications to the business Telegram chat.

TelegramNotifier raises on failure; callers run it through
run_best_effort() so a failed send never rolls a booking back.
"""

import logging
from datetime import datetime, timezone
from typing import Protocol

import httpx

from ..config import Settings

logger = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org"


class NotificationError(Exception):
    pass


class Notifier(Protocol):
    def booking_created(self, reservation: dict) -> None: ...


class DisabledNotifier:
    def booking_created(self, reservation: dict) -> None:
        logger.info("Telegram credentials not configured, skipping notification")


def format_booking_message(reservation: dict, tz: timezone) -> str:
    start = reservation["start_instant"].astimezone(tz)
    end = reservation["end_instant"].astimezone(tz)
    label = "Email" if reservation["contact_kind"] == "EMAIL" else "Telegram"
    return (
        "📅 New consultation booking\n\n"
        f"⏰ Time: {start:%d.%m.%Y %H:%M} - {end:%H:%M} ({_offset_label(tz)})\n"
        f"📧 {label}: {reservation['contact']}\n"
        f"🆔 Booking ID: {reservation['id']}"
    )


def _offset_label(tz: timezone) -> str:
    return datetime.now(tz).strftime("UTC%z")


class TelegramNotifier:
    def __init__(self, bot_token: str, chat_id: str, tz: timezone, timeout: float = 5.0):
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.tz = tz
        self.timeout = timeout

    def booking_created(self, reservation: dict) -> None:
        url = f"{TELEGRAM_API_URL}/bot{self.bot_token}/sendMessage"
        payload = {
            "chat_id": self.chat_id,
            "text": format_booking_message(reservation, self.tz),
        }

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(url, json=payload)
        except httpx.HTTPError as e:
            raise NotificationError(f"Telegram request failed: {e}") from e

        if response.status_code != 200:
            raise NotificationError(f"Telegram API error {response.status_code}: {response.text}")

        logger.info(f"Telegram notification sent for booking {reservation['id']}")


def build_notifier(settings: Settings, tz: timezone) -> Notifier:
    if not settings.telegram_bot_token or not settings.telegram_chat_id:
        logger.warning("Telegram credentials not configured, notifications disabled")
        return DisabledNotifier()
    return TelegramNotifier(settings.telegram_bot_token, settings.telegram_chat_id, tz)
