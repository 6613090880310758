import html
import logging

import telegram

from launch_scanner.config import settings
from launch_scanner.delivery.base import LaunchNotifier
from launch_scanner.storage.models import Launch

logger = logging.getLogger(__name__)

# Telegram rejects messages over 4096 chars
_MAX_MESSAGE = 4000


def format_chat_id(chat_id: str) -> str:
    """Supergroup ids need the -100 prefix; @usernames pass through."""
    chat_id = chat_id.strip()
    if not chat_id or chat_id.startswith("@") or chat_id.startswith("-100"):
        return chat_id
    if chat_id.startswith("-"):
        return f"-100{chat_id[1:]}"
    return f"-100{chat_id}"


_TEMPLATE = (
    "🚀 <b>New Launch Detected!</b>\n\n"
    "<b>{title}</b>\n"
    "🔗 <a href=\"{url}\">View Launch</a>\n\n"
    "📝 <b>Summary:</b>\n{summary}\n\n"
    "🔍 <b>Analysis:</b>\n{analysis}\n\n"
    "⭐ <b>Rating:</b> {rating}/10"
)


def _clip(text: str, limit: int) -> str:
    """HTML-escape text, cutting the raw text so the escaped result fits in limit."""
    escaped = html.escape(text)
    if len(escaped) <= limit:
        return escaped
    if limit <= 3:
        return ""
    n = limit - 3
    clipped = html.escape(text[:n])
    while n > 0 and len(clipped) > limit - 3:
        n -= len(clipped) - (limit - 3)
        clipped = html.escape(text[:max(n, 0)])
    return clipped + "..."


def format_launch_message(launch: Launch) -> str:
    fields = {
        "title": html.escape(launch.title),
        "url": html.escape(launch.url, quote=True),
        "rating": launch.rating,
    }
    budget = _MAX_MESSAGE - len(_TEMPLATE.format(summary="", analysis="", **fields))
    analysis = html.escape(launch.analysis)
    # the summary keeps at least a third of the room; the analysis gets the rest
    summary = _clip(launch.summary, max(budget // 3, budget - len(analysis)))
    analysis = _clip(launch.analysis, budget - len(summary))
    return _TEMPLATE.format(summary=summary, analysis=analysis, **fields)


class TelegramNotifier(LaunchNotifier):
    """Pushes new-launch announcements to a chat, optionally into a forum topic."""

    def __init__(self, bot: telegram.Bot | None = None) -> None:
        self._bot = bot or telegram.Bot(token=settings.telegram_bot_token)
        self._chat_id = format_chat_id(settings.telegram_chat_id)
        self._topic_id = settings.telegram_topic_id or None

    async def send_launch(self, launch: Launch) -> None:
        try:
            await self._bot.send_message(
                chat_id=self._chat_id,
                text=format_launch_message(launch),
                parse_mode="HTML",
                message_thread_id=self._topic_id,
                link_preview_options=telegram.LinkPreviewOptions(is_disabled=True),
            )
            logger.info("Telegram notification sent for %s", launch.title)
        except telegram.error.TelegramError as exc:
            logger.error("Telegram delivery failed for %s: %s", launch.title, exc)
