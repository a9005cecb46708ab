"""Telegram Bot API delivery: message formatting, splitting and retries"""

import asyncio
import html
import logging
from datetime import datetime
from typing import List, Optional

import httpx

from .schemas.release import ReleaseMessage

TELEGRAM_API_BASE = "https://api.telegram.org"
MAX_MESSAGE_LENGTH = 4096
MAX_RETRIES = 3
RETRY_DELAY = 1.0  # seconds, doubled after each failed attempt
DEFAULT_RETRY_AFTER = 5
TRUNCATION_MARKER = "\n\n... (truncated)"

logger = logging.getLogger(__name__)


class TelegramError(Exception):
    """A message could not be delivered after all retries"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def escape_html(text: str) -> str:
    """Escape &, <, >, " and ' for Telegram's HTML parse mode"""
    return html.escape(text, quote=True)


def truncate_changelog(changelog: str, max_length: int = 2500) -> str:
    if len(changelog) <= max_length:
        return changelog
    return changelog[:max_length] + TRUNCATION_MARKER


def format_date(value: Optional[datetime]) -> str:
    if value is None:
        return "an unknown date"
    return f"{value:%B} {value.day}, {value.year}"


def format_release_message(data: ReleaseMessage, max_changelog_length: int = 2500) -> str:
    changelog = (
        escape_html(truncate_changelog(data.body, max_changelog_length))
        if data.body
        else "<i>No changelog provided</i>"
    )

    return (
        f"🚀 <b>{escape_html(data.repo_name)}</b>: new release <code>{escape_html(data.tag_name)}</code>\n"
        f"\n"
        f"📅 Published by {escape_html(data.author)} on {format_date(data.published_at)}\n"
        f"\n"
        f"<b>📋 Release Notes:</b>\n"
        f"{changelog}\n"
        f"\n"
        f'🔗 <a href="{escape_html(data.html_url)}">View full release on GitHub</a>'
    )


def split_message(text: str, limit: int = MAX_MESSAGE_LENGTH) -> List[str]:
    """
    Split text into chunks of at most `limit` characters.

    Prefers to cut right before a newline; if the last newline within the
    limit falls in the first half of the chunk, cuts hard at the limit.
    Joining the chunks gives back the input text.
    """
    parts: List[str] = []
    remaining = text

    while remaining:
        if len(remaining) <= limit:
            parts.append(remaining)
            break

        split_at = remaining.rfind("\n", 0, limit + 1)
        if split_at == -1 or split_at < limit / 2:
            split_at = limit

        parts.append(remaining[:split_at])
        remaining = remaining[split_at:]

    return parts


class TelegramClient:
    def __init__(
        self,
        bot_token: str,
        default_chat_id: str,
        client: Optional[httpx.AsyncClient] = None,
        base_url: str = TELEGRAM_API_BASE,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY,
        part_delay: float = 0.5,
    ):
        self.default_chat_id = default_chat_id
        self.url = f"{base_url.rstrip('/')}/bot{bot_token}/sendMessage"
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.part_delay = part_delay
        self._client = client or httpx.AsyncClient(timeout=10.0)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def send(self, text: str, chat_id: Optional[str] = None, parse_mode: str = "HTML") -> None:
        """
        Send a message, splitting it into several if it exceeds the limit.

        Raises:
            TelegramError: if any part fails after all retries
        """
        target = chat_id or self.default_chat_id
        parts = split_message(text)
        if len(parts) > 1:
            logger.warning(f"Message exceeds {MAX_MESSAGE_LENGTH} characters, splitting into {len(parts)} parts")

        for index, part in enumerate(parts, start=1):
            label = f" (part {index}/{len(parts)})" if len(parts) > 1 else ""
            await self._send_single(part, target, parse_mode, label)
            if index < len(parts):
                await asyncio.sleep(self.part_delay)

    async def _send_single(self, text: str, chat_id: str, parse_mode: str, label: str = "") -> dict:
        payload = {
            "chat_id": chat_id,
            "text": text,
            "parse_mode": parse_mode,
            "disable_web_page_preview": False,
        }

        for attempt in range(1, self.max_retries + 1):
            try:
                response = await self._client.post(self.url, json=payload)
                response.raise_for_status()
                data = response.json()
                message_id = data.get("result", {}).get("message_id")
                logger.info(f"Telegram message {message_id} sent to chat {chat_id}{label}")
                return data
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                if status == 429 and attempt < self.max_retries:
                    retry_after = _retry_after(e.response)
                    logger.warning(f"Rate limited by Telegram, retrying after {retry_after}s")
                    await asyncio.sleep(retry_after)
                    continue
                error = TelegramError(f"Telegram API returned {status}: {_description(e.response)}", status)
                last_exc: Exception = e
            except httpx.HTTPError as e:
                error = TelegramError(f"Telegram request failed: {type(e).__name__}")
                last_exc = e

            if attempt < self.max_retries:
                delay = self.retry_delay * 2 ** (attempt - 1)
                logger.warning(
                    f"Failed to send message (attempt {attempt}/{self.max_retries}): {error}. "
                    f"Retrying in {delay:.1f}s"
                )
                await asyncio.sleep(delay)
                continue

            logger.error(f"Failed to send Telegram message to chat {chat_id} after {self.max_retries} attempts: {error}")
            raise error from last_exc

        raise TelegramError("Telegram message was not sent")


def _retry_after(response: httpx.Response) -> float:
    try:
        return float(response.json().get("parameters", {}).get("retry_after", DEFAULT_RETRY_AFTER))
    except (ValueError, AttributeError):
        return DEFAULT_RETRY_AFTER


def _description(response: httpx.Response) -> str:
    # Never echo the request URL, it contains the bot token
    try:
        return str(response.json().get("description", ""))
    except (ValueError, AttributeError):
        return ""
