"""
Telegram bot integration for sending audit alerts.

Sends a message to the operations chat when recorded sales exceed the
stock loaded for a product.
"""

from datetime import date
from typing import Optional
import requests
import structlog

from config import settings
from exceptions import TelegramError
from models.reconciliation import ReconciliationWarning

logger = structlog.get_logger(__name__)

MARKDOWN_SPECIAL = ("_", "*", "`", "[")


def get_telegram_config() -> tuple[Optional[str], Optional[str]]:
    """
    Get Telegram configuration from settings.

    Returns:
        tuple: (bot_token, chat_id)
    """
    bot_token = settings.telegram_bot_token
    chat_id = settings.telegram_chat_id

    if not bot_token or not chat_id:
        logger.debug(
            "telegram_not_configured",
            has_token=bool(bot_token),
            has_chat_id=bool(chat_id)
        )

    return bot_token, chat_id


def escape_markdown(text: str) -> str:
    """Escape characters Telegram's legacy Markdown treats as entities."""
    for char in MARKDOWN_SPECIAL:
        text = text.replace(char, "\\" + char)
    return text


def format_reconciliation_alert(
    warning: ReconciliationWarning,
    route_id: str,
    load_date: date
) -> str:
    """
    Format an oversell warning as a Telegram message.

    Args:
        warning: NEGATIVE_RECONCILIATION warning
        route_id: Route the warning belongs to
        load_date: Business date

    Returns:
        Formatted message string
    """
    details = warning.details
    lines = [
        "🚨 *Stock oversold*",
        "",
        escape_markdown(warning.message),
        "",
        f"Route: `{route_id}`",
        f"Date: {load_date.isoformat()}",
        f"Product: `{warning.product_id}`",
    ]

    if "start_pieces" in details:
        lines.append(
            f"Loaded {details['start_pieces']} pcs, sold {details['sold_pieces']} pcs, "
            f"short {details['deficit_pieces']} pcs"
        )

    return "\n".join(lines)


def send_message(message: str, parse_mode: str = "Markdown") -> bool:
    """
    Send message to Telegram.

    Args:
        message: Message text to send
        parse_mode: Telegram parse mode (Markdown or HTML)

    Returns:
        True if sent, False if Telegram is not configured

    Raises:
        TelegramError: If send fails
    """
    bot_token, chat_id = get_telegram_config()

    if not bot_token or not chat_id:
        logger.info("telegram_not_configured_skipping_send")
        return False

    url = f"https://api.telegram.org/bot{bot_token}/sendMessage"

    payload = {
        "chat_id": chat_id,
        "text": message,
        "parse_mode": parse_mode,
        "disable_web_page_preview": True,
    }

    try:
        logger.info("sending_telegram_message", chat_id=chat_id)

        response = requests.post(url, json=payload, timeout=10)
        response.raise_for_status()

        result = response.json()

        if not result.get("ok"):
            error_msg = result.get("description", "Unknown error")
            logger.error("telegram_api_error", error=error_msg)
            raise TelegramError(f"Telegram API error: {error_msg}")

        logger.info("telegram_message_sent", message_id=result.get("result", {}).get("message_id"))
        return True

    except requests.exceptions.RequestException as e:
        logger.error("telegram_request_failed", error=str(e))
        raise TelegramError(f"Failed to send Telegram message: {str(e)}")


def send_reconciliation_alert(
    warning: ReconciliationWarning,
    route_id: str,
    load_date: date
) -> bool:
    """
    Send an oversell warning to Telegram.

    Returns:
        True if sent, False if Telegram is not configured

    Raises:
        TelegramError: If send fails
    """
    message = format_reconciliation_alert(warning, route_id, load_date)
    return send_message(message)
