"""
Notification sinks: where the delivery agent hands off due reminders.
"""
import json
import logging
import os
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from firebase_admin import _apps, credentials, initialize_app, messaging  # type: ignore

from .config import settings
from .errors import DeliveryError

logger = logging.getLogger(__name__)


class NotificationSink(ABC):

    @abstractmethod
    def notify(self, title: str, body: str, tag: Optional[str], target_reference: Dict[str, Any]) -> None:
        """Present one notification; raise DeliveryError when it cannot be shown."""

    def on_identity(self, identity) -> None:
        """Called by the agent after the identity handshake."""


class LoggingNotificationSink(NotificationSink):
    """Development sink that only logs, and remembers what it was given."""

    def __init__(self):
        self.sent = []

    def notify(self, title: str, body: str, tag: Optional[str], target_reference: Dict[str, Any]) -> None:
        logger.info(f"🔔 [Notify] {title} | {body} | tag={tag} target={target_reference}")
        self.sent.append((title, body, tag, dict(target_reference or {})))


def _ensure_firebase_initialized() -> bool:
    if _apps:
        return True

    proj = settings.FCM_PROJECT_ID
    creds_json: Optional[str] = (
        settings.FCM_CREDENTIALS_JSON
        or os.getenv("GOOGLE_APPLICATION_CREDENTIALS_JSON")
        or os.getenv("GOOGLE_APPLICATION_CREDENTIALS")
    )
    options = {"projectId": proj} if proj else None
    logger.info(f"🔍 [FCM] Initializing Firebase | project_id={proj} credentials set={bool(creds_json)}")

    try:
        if creds_json and creds_json.strip().startswith("{"):
            initialize_app(credentials.Certificate(json.loads(creds_json)), options=options)
        elif creds_json and os.path.exists(creds_json):
            initialize_app(credentials.Certificate(creds_json), options=options)
        elif proj:
            initialize_app(options=options)
        else:
            logger.warning("⚠️ [FCM] No credentials or project configured, push delivery disabled")
            return False
    except Exception as e:
        logger.error(f"❌ [FCM] Failed to initialize Firebase: {e!r}")
        return False

    logger.info(f"✅ [FCM] Firebase app initialized. apps={len(_apps)}")
    return True


def flatten_target_reference(target_reference: Dict[str, Any]) -> Dict[str, str]:
    """FCM data payloads only carry string values."""
    data = {}
    for key, value in (target_reference or {}).items():
        if value is None:
            continue
        if isinstance(value, (dict, list)):
            data[key] = json.dumps(value, sort_keys=True)
        else:
            data[key] = str(value)
    return data


class FcmNotificationSink(NotificationSink):
    """Firebase Cloud Messaging sink; the device token comes from the identity handshake."""

    def __init__(self, token: Optional[str] = None, dry_run: bool = False):
        self.token = token
        self.dry_run = dry_run

    def on_identity(self, identity) -> None:
        if identity is not None and identity.push_token:
            self.token = identity.push_token

    def notify(self, title: str, body: str, tag: Optional[str], target_reference: Dict[str, Any]) -> None:
        if not self.token:
            raise DeliveryError("No push token registered for this device")
        if not _ensure_firebase_initialized():
            raise DeliveryError("Firebase is not initialized")

        notification_id = str(uuid.uuid4())
        data = flatten_target_reference(target_reference)
        data["notification_id"] = notification_id
        if tag:
            data["tag"] = tag

        message = messaging.Message(
            token=self.token,
            notification=messaging.Notification(title=title, body=body),
            data=data,
            apns=messaging.APNSConfig(
                headers={
                    "apns-push-type": "alert",
                    "apns-priority": "10",
                    "apns-collapse-id": tag or notification_id,
                }
            ),
        )
        try:
            result = messaging.send(message, dry_run=self.dry_run)
        except Exception as e:
            raise DeliveryError(f"FCM send failed: {e!r}") from e
        logger.info(f"✅ [FCM] Notification sent: {result}")
