"""Event notification to a webhook."""
import logging
from datetime import datetime, timezone
from typing import Any, Dict

import requests

from ohlcv_provider.config import Config
from ohlcv_provider.marketdata.models import ProviderEvent

logger = logging.getLogger(__name__)


class Notifier:
    """Send provider events to a webhook. Never raises exceptions to protect the provider."""

    def __init__(self, webhook_url: str, timeout: float = 5.0) -> None:
        self.webhook_url = webhook_url
        self.timeout = timeout
        self.session = requests.Session()

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    def send_event(self, event_type: str, data: Dict[str, Any]) -> bool:
        """
        Send event to the webhook.

        Args:
            event_type: Type of event (e.g., 'backfill_failed', 'started')
            data: Event payload

        Returns:
            True if sent successfully, False otherwise
        """
        if not self.enabled:
            return False

        try:
            payload = {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "event_type": event_type,
                "bot_name": Config.BOT_NAME,
                "data": data,
            }

            response = self.session.post(
                self.webhook_url,
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )

            if response.status_code >= 400:
                logger.warning(
                    f"Webhook returned {response.status_code}: {response.text[:200]}"
                )
                return False

            logger.debug(f"Event sent: {event_type}")
            return True

        except requests.exceptions.Timeout:
            logger.warning(f"Webhook timeout sending {event_type}")
            return False
        except requests.exceptions.ConnectionError:
            logger.warning(f"Webhook connection error sending {event_type}")
            return False
        except Exception as e:
            logger.error(f"Unexpected error sending webhook event: {e}", exc_info=True)
            return False

    def __call__(self, event: ProviderEvent) -> None:
        """Provider event listener."""
        self.send_event(event.kind, event.model_dump(mode="json"))

    def send_started(self, symbol: str, timeframe: str) -> bool:
        return self.send_event("started", {"message": f"Candle provider for {symbol}/{timeframe} started"})

    def send_stopped(self, symbol: str, timeframe: str) -> bool:
        return self.send_event("stopped", {"message": f"Candle provider for {symbol}/{timeframe} stopped"})
