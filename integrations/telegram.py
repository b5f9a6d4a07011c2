"""
Telegram bot integration for allocation notifications.

Sends the RFQ closure summary and deviation alerts to the configured
chat. Callers treat every failure here as non-fatal.
"""

from typing import Optional
import requests
import structlog

from config import settings
from exceptions import TelegramError
from models.allocation import EffectiveAllocationResponse, FinalizeResult
from models.quote import QuoteResponse
from models.recommendation import Recommendation
from models.rfq import RFQResponse

logger = structlog.get_logger(__name__)


def get_telegram_config() -> tuple[Optional[str], Optional[str]]:
    """
    Get Telegram configuration from settings.

    Returns:
        tuple: (bot_token, chat_id)
    """
    if not settings.telegram_configured:
        logger.warning(
            "telegram_not_configured",
            has_token=bool(settings.telegram_bot_token),
            has_chat_id=bool(settings.telegram_chat_id)
        )
    return settings.telegram_bot_token, settings.telegram_chat_id


def _rfq_heading(rfq: RFQResponse) -> str:
    return f"RFQ #{rfq.rfq_number} ({rfq.item_description})"


def format_closure_message(
    rfq: RFQResponse,
    allocation: EffectiveAllocationResponse,
    quotes: list[QuoteResponse],
) -> str:
    """
    Format the closure summary: every quote with what it was awarded.

    Vendors with no allocation are listed too, so each vendor learns
    the outcome.
    """
    awarded = {line.quote_id: line for line in allocation.allocations}

    lines = [
        "✅ *RFQ closed*",
        "",
        f"📋 {_rfq_heading(rfq)}",
        f"🚢 {rfq.port_of_loading} → {rfq.port_of_destination}",
        f"📦 {allocation.total_allocated}/{allocation.required_containers} containers allocated",
        "",
    ]

    for quote in quotes:
        line = awarded.get(quote.id)
        if line is None or (line.containers_home + line.containers_moowr) == 0:
            lines.append(f"• `{quote.vendor_name}`: not allocated")
            continue
        lines.append(
            f"• `{quote.vendor_name}`: {line.containers_home} HOME, {line.containers_moowr} MOOWR"
        )

    return "\n".join(lines)


def format_deviation_message(
    rfq: RFQResponse,
    result: FinalizeResult,
    recommendation: Recommendation,
    reason: Optional[str],
) -> str:
    """Format the internal alert sent when an allocation departs from the recommendation."""
    vendors = {line.quote_id: line.vendor_name for line in recommendation.lines}

    lines = [
        "⚠️ *Allocation deviation*",
        "",
        f"📋 {_rfq_heading(rfq)}",
        "",
        "Recommended:",
    ]
    for line in recommendation.lines:
        if line.containers_home or line.containers_moowr:
            lines.append(
                f"• `{line.vendor_name}`: {line.containers_home} HOME, {line.containers_moowr} MOOWR"
            )

    lines.append("")
    lines.append("Committed in this batch:")
    for record in result.records:
        vendor = record.vendor_name or vendors.get(record.quote_id, record.quote_id)
        edited = " (prices edited)" if record.price_edited else ""
        lines.append(
            f"• `{vendor}`: +{record.containers_home} HOME, +{record.containers_moowr} MOOWR{edited}"
        )

    lines.append("")
    lines.append(f"📝 Reason: {reason or '-'}")
    lines.append(f"📦 {result.total_allocated}/{result.required_containers} containers allocated")

    return "\n".join(lines)


def send_message(message: str, parse_mode: str = "Markdown") -> bool:
    """
    Send message to Telegram.

    Args:
        message: Message text to send
        parse_mode: Telegram parse mode (Markdown or HTML)

    Returns:
        True if sent, False if the bot is not configured

    Raises:
        TelegramError: If send fails
    """
    bot_token, chat_id = get_telegram_config()

    if not bot_token or not chat_id:
        logger.warning("telegram_not_configured_skipping_send")
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

        response = requests.post(url, json=payload, timeout=settings.notification_timeout_seconds)
        response.raise_for_status()

        result = response.json()

        if not isinstance(result, dict):
            logger.error("telegram_unexpected_response", body_type=type(result).__name__)
            raise TelegramError("Telegram API returned an unexpected response")

        if not result.get("ok"):
            error_msg = result.get("description", "Unknown error")
            logger.error("telegram_api_error", error=error_msg)
            raise TelegramError(f"Telegram API error: {error_msg}")

        sent = result.get("result")
        logger.info("telegram_message_sent", message_id=sent.get("message_id") if isinstance(sent, dict) else None)
        return True

    except requests.exceptions.RequestException as e:
        logger.error("telegram_request_failed", error=str(e))
        raise TelegramError(
            f"Failed to send Telegram message: {str(e)}",
            details={"error_type": type(e).__name__}
        )
    except ValueError as e:
        logger.error("telegram_invalid_json", error=str(e))
        raise TelegramError("Telegram API response was not JSON")


def notify_rfq_closed(
    rfq: RFQResponse,
    allocation: EffectiveAllocationResponse,
    quotes: list[QuoteResponse],
) -> bool:
    """
    Send the closure summary.

    Raises:
        TelegramError: If send fails
    """
    return send_message(format_closure_message(rfq, allocation, quotes))


def notify_allocation_deviation(
    rfq: RFQResponse,
    result: FinalizeResult,
    recommendation: Recommendation,
    reason: Optional[str],
) -> bool:
    """
    Send the deviation alert.

    Raises:
        TelegramError: If send fails
    """
    return send_message(format_deviation_message(rfq, result, recommendation, reason))
