"""
Transactional notifications through Novu.

Handlers build a Notification and hand it to Notifier.dispatch. Delivery is
synchronous for now; dispatch is the one place a queue or retry policy would go.
"""

import logging
from datetime import date
from typing import Any, Dict, Optional

import requests
from fastapi import Request
from pydantic import BaseModel, Field

from database import serialize

logger = logging.getLogger(__name__)

VERIFY_ACCOUNT = "kora-verify-account"
FORGOT_PASSWORD = "kora-forgot-password"
TRANSACTION = "kora-transaction"


class NotificationError(Exception):
    pass


class Notification(BaseModel):
    template: str
    subscriber_id: str
    email: str
    payload: Dict[str, Any] = Field(default_factory=dict)


class Notifier:
    def __init__(self, api_key: str, api_url: str = "https://api.novu.co/v1",
                 session: Optional[requests.Session] = None, timeout: float = 10.0):
        self.api_key = api_key
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def dispatch(self, notification: Notification) -> Dict[str, Any]:
        body = {
            "name": notification.template,
            "to": {
                "subscriberId": notification.subscriber_id,
                "email": notification.email,
            },
            "payload": serialize(notification.payload),
        }
        try:
            resp = self.session.post(
                f"{self.api_url}/events/trigger",
                json=body,
                headers={"Authorization": f"ApiKey {self.api_key}"},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            return resp.json() if resp.content else {}
        except requests.RequestException as exc:
            logger.exception("Notification %s to %s failed", notification.template, notification.email)
            raise NotificationError(str(exc)) from exc

    def close(self) -> None:
        self.session.close()


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def billed_date(day: date) -> str:
    """19 October 2026 -> '19th October 2026'."""
    if 11 <= day.day % 100 <= 13:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(day.day % 10, "th")
    return f"{day.day}{suffix} {day.strftime('%B %Y')}"
