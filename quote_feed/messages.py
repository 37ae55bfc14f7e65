"""User-facing message templates."""

from __future__ import annotations

MSG_MISSING_TICKER_SYMBOL = "Ticker symbol is missing for security '{0}'"
MSG_NO_QUOTE_AVAILABLE = "No quote available for {0}"


def format_message(template: str, *args: object) -> str:
    return template.format(*args)


__all__ = ["MSG_MISSING_TICKER_SYMBOL", "MSG_NO_QUOTE_AVAILABLE", "format_message"]
