# tests/test_dispatchers.py

"""Tests for the notification transports."""

import unittest
from unittest.mock import MagicMock, patch

from pricewatch.models.product import Product
from pricewatch.notifications.base_dispatcher import NotificationDispatcher
from pricewatch.notifications.discord_dispatcher import (
    DiscordWebhookDispatcher,
)
from pricewatch.notifications.log_dispatcher import LogDispatcher

WEBHOOK = "https://discord.com/api/webhooks/1/abc"


def _product() -> Product:
    return Product(
        asin="B07XJ8C8F5",
        title="Echo Dot",
        current_price=85.0,
        original_price=100.0,
        discount_percent=15,
        product_url="https://www.amazon.com/dp/B07XJ8C8F5",
    )


class TestFormatMessage(unittest.TestCase):
    """Shared alert text."""

    def test_mentions_price_drop_and_reason(self) -> None:
        """The message names the price, the drop and the reason."""
        text = NotificationDispatcher.format_message(
            _product(), 15.0, "price_drop",
        )
        self.assertIn("Echo Dot", text)
        self.assertIn("USD 85.00", text)
        self.assertIn("15%", text)
        self.assertIn("price_drop", text)


class TestLogDispatcher(unittest.TestCase):
    """LogDispatcher writes alerts to the log."""

    def test_send_logs_and_succeeds(self) -> None:
        """Logging an alert always succeeds."""
        dispatcher = LogDispatcher()
        with self.assertLogs("pricewatch.notify.log", level="INFO") as cm:
            ok = dispatcher.send("alice", _product(), 15.0, "price_drop")
        self.assertTrue(ok)
        self.assertIn("alice", cm.output[0])


@patch("pricewatch.notifications.discord_dispatcher.curl_requests.Session")
class TestDiscordWebhookDispatcher(unittest.TestCase):
    """Discord webhook transport."""

    def _dispatcher(
        self, mock_session_cls: MagicMock, url: str = WEBHOOK,
    ) -> tuple[DiscordWebhookDispatcher, MagicMock]:
        session = MagicMock()
        mock_session_cls.return_value = session
        return DiscordWebhookDispatcher(webhook_url=url), session

    def test_success_on_204(self, mock_session_cls: MagicMock) -> None:
        """Discord's 204 means delivered."""
        dispatcher, session = self._dispatcher(mock_session_cls)
        session.post.return_value = MagicMock(status_code=204)
        self.assertTrue(
            dispatcher.send("alice", _product(), 15.0, "price_drop")
        )
        args, kwargs = session.post.call_args
        self.assertEqual(args[0], WEBHOOK)
        embed = kwargs["json"]["embeds"][0]
        self.assertEqual(embed["title"], "Echo Dot")
        self.assertEqual(embed["url"], _product().product_url)

    def test_http_error_is_failure(
        self, mock_session_cls: MagicMock,
    ) -> None:
        """Rejected webhooks report failure."""
        dispatcher, session = self._dispatcher(mock_session_cls)
        session.post.return_value = MagicMock(status_code=400)
        self.assertFalse(
            dispatcher.send("alice", _product(), 15.0, "price_drop")
        )

    def test_exception_is_failure(
        self, mock_session_cls: MagicMock,
    ) -> None:
        """Transport errors are logged and reported as failure."""
        dispatcher, session = self._dispatcher(mock_session_cls)
        session.post.side_effect = ConnectionError("down")
        self.assertFalse(
            dispatcher.send("alice", _product(), 15.0, "price_drop")
        )

    @patch(
        "pricewatch.notifications.discord_dispatcher.Settings"
        ".DISCORD_WEBHOOK_URL",
        "",
    )
    def test_unconfigured_is_failure(
        self, mock_session_cls: MagicMock,
    ) -> None:
        """Without a URL nothing is posted."""
        dispatcher, session = self._dispatcher(mock_session_cls, url="")
        self.assertFalse(
            dispatcher.send("alice", _product(), 15.0, "price_drop")
        )
        session.post.assert_not_called()


if __name__ == "__main__":
    unittest.main()
