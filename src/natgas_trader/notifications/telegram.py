"""Telegram Bot API notifications for executed and failed trades."""

from __future__ import annotations

import logging

from natgas_trader.common.http import HttpClient
from natgas_trader.config import get_settings
from natgas_trader.signals.formatters import format_telegram_decision
from natgas_trader.trading.models import CycleResult

logger = logging.getLogger(__name__)


class TelegramNotifier:
    """Send trade alerts via Telegram Bot API.

    All errors are logged but never raised; notifications must not break
    a trading cycle.
    """

    def __init__(
        self,
        bot_token: str | None = None,
        chat_id: str | None = None,
    ) -> None:
        settings = get_settings()
        self._bot_token = bot_token or settings.telegram_bot_token
        self._chat_id = chat_id or settings.telegram_chat_id

    @property
    def _enabled(self) -> bool:
        return bool(self._bot_token and self._chat_id)

    async def send_message(self, text: str, parse_mode: str = "Markdown") -> bool:
        """Send a message via the Telegram Bot API.

        Returns True if the message was sent successfully, False otherwise.
        """
        if not self._enabled:
            logger.debug("Telegram not configured, skipping message")
            return False

        try:
            async with HttpClient(base_url="https://api.telegram.org") as client:
                await client.post(
                    f"/bot{self._bot_token}/sendMessage",
                    json={
                        "chat_id": self._chat_id,
                        "text": text,
                        "parse_mode": parse_mode,
                    },
                )
            return True
        except Exception:
            logger.warning("Failed to send Telegram message", exc_info=True)
            return False

    async def notify(self, result: CycleResult) -> bool:
        """Alert on cycles that traded or tried to. Holds are silent."""
        if result.report is None or not (result.traded or result.execution_failed):
            return False
        sent = await self.send_message(format_telegram_decision(result))
        if sent:
            logger.info("Telegram: sent trade alert for cycle %s", result.cycle_id)
        return sent
