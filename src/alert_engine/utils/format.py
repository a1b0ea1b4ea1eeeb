from __future__ import annotations


def format_currency(value: float) -> str:
    """Render a USD amount for human-facing notifications.

    >= 1e9 -> "$1.23B", >= 1e6 -> "$4.56M", otherwise "$" with thousands
    separators and 6 decimals below 1, 2 decimals above.
    """
    v = float(value)
    if v >= 1_000_000_000:
        return f"${v / 1_000_000_000:.2f}B"
    if v >= 1_000_000:
        return f"${v / 1_000_000:.2f}M"
    places = 6 if v < 1 else 2
    return f"${v:,.{places}f}"


def format_percent(value: float) -> str:
    return f"{float(value):.2f}%"


def format_ratio(value: float) -> str:
    return f"{float(value):.2f}x"
