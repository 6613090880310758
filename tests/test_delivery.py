"""Tests for Telegram notifications and read-view invalidation."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import telegram

from launch_scanner.config import settings
from launch_scanner.delivery.invalidation import ViewInvalidator, in_request_context, request_scope
from launch_scanner.delivery.telegram_bot import TelegramNotifier, format_chat_id, format_launch_message
from launch_scanner.delivery.web import views
from launch_scanner.storage.models import Launch


def _launch(**kwargs) -> Launch:
    defaults = {
        "title": "Agent <Smith> ($SMITH)",
        "url": "https://app.virtuals.io/virtual/b1c2",
        "summary": "AI agent & friends",
        "analysis": "Looks fair.",
        "rating": 7,
    }
    defaults.update(kwargs)
    return Launch(**defaults)


@pytest.mark.parametrize("raw,expected", [
    ("1234567890", "-1001234567890"),
    ("-1234567890", "-1001234567890"),
    ("-1001234567890", "-1001234567890"),
    ("@launch_channel", "@launch_channel"),
])
def test_format_chat_id(raw, expected):
    assert format_chat_id(raw) == expected


def test_message_escapes_html():
    text = format_launch_message(_launch())
    assert "<b>Agent &lt;Smith&gt; ($SMITH)</b>" in text
    assert "AI agent &amp; friends" in text
    assert "7/10" in text


def test_long_analysis_is_truncated():
    text = format_launch_message(_launch(analysis="x" * 5000))
    assert len(text) <= 4000
    assert text.endswith("7/10")
    assert "x..." in text


def test_long_summary_is_truncated_too():
    text = format_launch_message(_launch(summary="s" * 5000, analysis="a" * 5000))
    assert len(text) <= 4000
    assert "s..." in text
    assert "a..." in text
    assert text.endswith("7/10")


def test_summary_repeating_the_analysis_is_cut_on_its_own():
    analysis = "Strong team. " * 200
    summary = analysis + "Fair launch."
    text = format_launch_message(_launch(summary=summary, analysis=analysis))

    assert len(text) <= 4000
    shown_summary = text.split("<b>Summary:</b>\n", 1)[1].split("\n\n", 1)[0]
    shown_analysis = text.split("<b>Analysis:</b>\n", 1)[1].split("\n\n", 1)[0]
    assert shown_summary.endswith("...") and summary.startswith(shown_summary[:-3])
    assert shown_analysis.endswith("...") and analysis.startswith(shown_analysis[:-3])
    assert len(shown_summary) > 1000


def test_truncation_never_splits_an_html_entity():
    text = format_launch_message(_launch(analysis="<&>" * 3000))
    body = text.split("<b>Analysis:</b>\n", 1)[1].split("\n\n", 1)[0]
    assert body.endswith("...")
    assert body[:-3].endswith(("&lt;", "&amp;", "&gt;"))
    assert len(text) <= 4000


class TestTelegramNotifier:
    @pytest.mark.asyncio
    async def test_sends_to_topic(self, monkeypatch):
        monkeypatch.setattr(settings, "telegram_chat_id", "1234567890")
        monkeypatch.setattr(settings, "telegram_topic_id", 42)
        bot = MagicMock()
        bot.send_message = AsyncMock()

        await TelegramNotifier(bot=bot).send_launch(_launch())

        kwargs = bot.send_message.await_args.kwargs
        assert kwargs["chat_id"] == "-1001234567890"
        assert kwargs["message_thread_id"] == 42
        assert kwargs["parse_mode"] == "HTML"

    @pytest.mark.asyncio
    async def test_no_topic(self, monkeypatch):
        monkeypatch.setattr(settings, "telegram_chat_id", "@chan")
        monkeypatch.setattr(settings, "telegram_topic_id", 0)
        bot = MagicMock()
        bot.send_message = AsyncMock()

        await TelegramNotifier(bot=bot).send_launch(_launch())

        assert bot.send_message.await_args.kwargs["message_thread_id"] is None

    @pytest.mark.asyncio
    async def test_telegram_error_is_logged_not_raised(self, monkeypatch):
        monkeypatch.setattr(settings, "telegram_chat_id", "1")
        bot = MagicMock()
        bot.send_message = AsyncMock(side_effect=telegram.error.TelegramError("chat not found"))

        await TelegramNotifier(bot=bot).send_launch(_launch())


class TestViewInvalidator:
    @pytest.mark.asyncio
    async def test_local_views_cleared(self):
        views.set_cached(("launches",), [1])
        assert await ViewInvalidator(local_views=True).invalidate() is True
        assert views.get_cached(("launches",)) is None

    @pytest.mark.asyncio
    async def test_request_context_clears_locally(self):
        views.set_cached(("launches",), [1])
        assert not in_request_context()
        with request_scope():
            assert in_request_context()
            assert await ViewInvalidator(revalidate_url="http://views/revalidate").invalidate() is True
        assert not in_request_context()
        assert views.get_cached(("launches",)) is None

    @pytest.mark.asyncio
    async def test_posts_to_revalidate_url(self):
        posted = []

        def handler(request):
            posted.append(request)
            return httpx.Response(200, json={"revalidated": True})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            invalidator = ViewInvalidator(client, revalidate_url="http://views/api/revalidate")
            assert await invalidator.invalidate() is True

        assert posted[0].method == "POST"
        assert str(posted[0].url) == "http://views/api/revalidate"

    @pytest.mark.asyncio
    async def test_revalidate_failure_returns_false(self):
        async with httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500))) as client:
            invalidator = ViewInvalidator(client, revalidate_url="http://views/api/revalidate")
            assert await invalidator.invalidate() is False

    @pytest.mark.asyncio
    async def test_nothing_to_invalidate(self):
        views.set_cached(("launches",), [1])
        assert await ViewInvalidator().invalidate() is False
        assert views.get_cached(("launches",)) == [1]
