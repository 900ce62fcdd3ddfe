"""
Digest email rendering and delivery through Resend.
"""

import logging
from datetime import datetime, timezone
from html import escape
from typing import List, Optional

import resend

from stock_digest.config import Settings
from stock_digest.errors import UpstreamError
from stock_digest.models import (NO_DATA_EVENT, UNAVAILABLE, Sentiment,
                                 StockResearchResult)


POSITIVE_COLOR = "#10B981"
NEGATIVE_COLOR = "#EF4444"
NEUTRAL_COLOR = "#6B7280"

SENTIMENT_COLORS = {
    Sentiment.BULLISH: POSITIVE_COLOR,
    Sentiment.BEARISH: NEGATIVE_COLOR,
    Sentiment.NEUTRAL: NEUTRAL_COLOR,
}

SENTIMENT_EMOJI = {
    Sentiment.BULLISH: "\U0001F4C8",
    Sentiment.BEARISH: "\U0001F4C9",
    Sentiment.NEUTRAL: "➡️",
}

# (label, attribute, values meaning "nothing to report")
DETAIL_FIELDS = [
    ("Insider Activity", "insider_activity", {"No significant activity", UNAVAILABLE}),
    ("Analyst Actions", "analyst_actions", {"No significant actions", UNAVAILABLE}),
    ("Competitive Dynamics", "competitive_dynamics", {"No significant changes", UNAVAILABLE}),
    ("Upcoming Catalysts", "upcoming_catalysts", {"None imminent", UNAVAILABLE}),
]

LABEL_STYLE = (
    "color: #A855F7; font-size: 12px; font-weight: 600; "
    "text-transform: uppercase; margin: 0 0 8px 0;"
)
DETAIL_STYLE = "color: #CBD5E1; font-size: 14px; line-height: 1.5; margin: 0;"


def change_color(change: str) -> str:
    """Green for a leading '+', red for a leading '-', grey otherwise."""
    if change.startswith("+"):
        return POSITIVE_COLOR
    if change.startswith("-"):
        return NEGATIVE_COLOR
    return NEUTRAL_COLOR


def build_subject(stocks: List[StockResearchResult]) -> str:
    return f"Your Stock Digest: {', '.join(s.ticker for s in stocks)}"


def has_key_events(stock: StockResearchResult) -> bool:
    return bool(stock.key_events) and stock.key_events[0] != NO_DATA_EVENT


def visible_details(stock: StockResearchResult) -> List[tuple]:
    """(label, text) pairs for detail fields that carry real information."""
    details = []
    for label, attribute, placeholders in DETAIL_FIELDS:
        value = getattr(stock, attribute)
        if value not in placeholders:
            details.append((label, value))
    return details


def _greeting(recipient: Optional[str]) -> str:
    if recipient:
        return f"Hey {escape(recipient.split('@')[0])}"
    return "Hey there"


def _render_stock(stock: StockResearchResult, is_last: bool) -> List[str]:
    sentiment_color = SENTIMENT_COLORS[stock.sentiment]
    emoji = SENTIMENT_EMOJI[stock.sentiment]
    change = stock.price_change

    parts = ["<div style='margin-bottom: 32px;'>"]
    parts.append("<table style='width: 100%; border-collapse: collapse;'><tr><td>")
    parts.append(
        f"<h2 style='color: #FFFFFF; font-size: 24px; margin: 0 0 4px 0;'>"
        f"{escape(stock.ticker)}"
        f"<span style='display: inline-block; font-size: 11px; font-weight: 600; "
        f"padding: 4px 10px; border-radius: 12px; color: #FFFFFF; "
        f"text-transform: uppercase; margin-left: 12px; "
        f"background-color: {sentiment_color};'>{emoji} {stock.sentiment.value}</span></h2>"
    )
    parts.append(
        f"<p style='color: #94A3B8; font-size: 14px; margin: 0;'>{escape(stock.company_name)}</p>"
    )
    parts.append("</td><td style='text-align: right; vertical-align: top;'>")
    parts.append(
        f"<p style='color: #FFFFFF; font-size: 24px; font-weight: 700; margin: 0;'>"
        f"{escape(stock.current_price)}</p>"
    )
    parts.append(
        f"<p style='font-size: 14px; font-weight: 600; margin: 4px 0 0 0; "
        f"color: {change_color(change.day)};'>{escape(change.day)} today</p>"
    )
    parts.append("</td></tr></table>")

    parts.append(
        "<table style='width: 100%; margin-top: 16px; background-color: #1E293B; "
        "border-radius: 12px; padding: 16px;'><tr>"
    )
    for label, value in (("Week", change.week), ("Month", change.month)):
        parts.append(
            f"<td style='width: 50%; text-align: center;'>"
            f"<p style='color: #64748B; font-size: 12px; margin: 0 0 4px 0; "
            f"text-transform: uppercase;'>{label}</p>"
            f"<p style='font-size: 18px; font-weight: 700; margin: 0; "
            f"color: {change_color(value)};'>{escape(value)}</p></td>"
        )
    parts.append("</tr></table>")

    parts.append(
        "<div style='background-color: #1E293B; border-radius: 12px; padding: 16px; "
        "margin-top: 16px; border-left: 4px solid #A855F7;'>"
        f"<p style='color: #E2E8F0; font-size: 15px; line-height: 1.6; margin: 0;'>"
        f"{escape(stock.summary)}</p></div>"
    )

    if has_key_events(stock):
        parts.append("<div style='margin-top: 16px;'>")
        parts.append(f"<p style='{LABEL_STYLE}'>Key Events</p>")
        for event in stock.key_events:
            parts.append(
                f"<p style='color: #CBD5E1; font-size: 14px; margin: 0 0 4px 0; "
                f"padding-left: 8px;'>&bull; {escape(event)}</p>"
            )
        parts.append("</div>")

    for label, text in visible_details(stock):
        parts.append("<div style='margin-top: 16px;'>")
        parts.append(f"<p style='{LABEL_STYLE}'>{label}</p>")
        parts.append(f"<p style='{DETAIL_STYLE}'>{escape(text)}</p>")
        parts.append("</div>")

    if not is_last:
        parts.append("<hr style='border-color: #334155; margin: 32px 0; border-style: dashed;'>")
    parts.append("</div>")
    return parts


def render_digest_html(
    stocks: List[StockResearchResult],
    recipient: Optional[str],
    dashboard_url: str,
) -> str:
    """Render the digest email body."""
    preview = f"Your stock digest: {', '.join(s.ticker for s in stocks)}"
    year = datetime.now(timezone.utc).year
    dashboard = escape(dashboard_url, quote=True)

    html_parts = [
        "<html><head><meta charset='utf-8'></head>",
        "<body style='background-color: #0F172A; font-family: -apple-system, "
        "BlinkMacSystemFont, \"Segoe UI\", Roboto, sans-serif;'>",
        f"<div style='display: none; max-height: 0; overflow: hidden;'>{escape(preview)}</div>",
        "<div style='margin: 0 auto; padding: 40px 20px; max-width: 600px;'>",
        "<div style='text-align: center; margin-bottom: 32px;'>"
        "<h1 style='color: #FFFFFF; font-size: 28px; margin: 0 0 8px 0;'>Stock Summaries</h1>"
        "<p style='color: #94A3B8; font-size: 14px; margin: 0;'>"
        "Your personalized market intelligence</p></div>",
        "<div style='margin-bottom: 24px;'>"
        f"<p style='color: #FFFFFF; font-size: 20px; font-weight: 600; margin: 0 0 8px 0;'>"
        f"{_greeting(recipient)} \U0001F44B</p>"
        "<p style='color: #94A3B8; font-size: 15px; line-height: 1.6; margin: 0;'>"
        "Here's what's happening with your watchlist. No fluff, just the signal.</p></div>",
        "<hr style='border-color: #334155; margin: 32px 0;'>",
    ]

    for index, stock in enumerate(stocks):
        html_parts.extend(_render_stock(stock, is_last=index == len(stocks) - 1))

    html_parts.append("<hr style='border-color: #334155; margin: 32px 0;'>")
    html_parts.append(
        "<div style='text-align: center; margin-top: 32px;'>"
        "<p style='color: #64748B; font-size: 13px; margin: 0 0 16px 0;'>"
        "Powered by AI. Always do your own research before investing.</p>"
        "<p style='color: #94A3B8; font-size: 13px; margin: 0 0 16px 0;'>"
        f"<a href='{dashboard}' style='color: #A855F7; text-decoration: none;'>Manage Watchlist</a>"
        " &bull; "
        f"<a href='{dashboard}' style='color: #A855F7; text-decoration: none;'>Update Schedule</a></p>"
        f"<p style='color: #475569; font-size: 12px; margin: 0;'>&copy; {year} Stock Summaries</p>"
        "</div>"
    )
    html_parts.append("</div></body></html>")
    return "\n".join(html_parts)


class DigestMailer:
    """Sends rendered digests through the Resend API."""

    def __init__(self, api_key: str, sender: str, dashboard_url: str):
        self._api_key = api_key
        self._sender = sender
        self._dashboard_url = dashboard_url

    @classmethod
    def from_settings(cls, settings: Settings) -> "DigestMailer":
        return cls(settings.resend_api_key, settings.email_from, settings.dashboard_url)

    def send(self, to: str, stocks: List[StockResearchResult]) -> str:
        """
        Send one digest email and return the provider's message id.

        Provider errors, and responses without a message id, raise
        ``UpstreamError``.
        """
        params = {
            "from": self._sender,
            "to": [to],
            "subject": build_subject(stocks),
            "html": render_digest_html(stocks, to, self._dashboard_url),
        }

        resend.api_key = self._api_key
        try:
            result = resend.Emails.send(params)
        except Exception as exc:
            logging.error("Error sending email via Resend: %s", exc, exc_info=True)
            raise UpstreamError("Failed to send email") from exc

        message_id = result.get("id") if result else None
        if not message_id:
            logging.error("Resend returned no message id: %r", result)
            raise UpstreamError("Failed to send email")

        logging.info(
            "Digest email sent for %d ticker(s). Message ID: %s", len(stocks), message_id
        )
        return message_id
