# src/services/email_template.py

"""HTML body for the price-history email."""

from collections.abc import Callable, Mapping
from html import escape
from typing import Any

Renderer = Callable[[Mapping[str, Any]], str]

_ROW = "<tr><td>{date}</td><td>{price}</td></tr>"

_PAGE = (
    "<html>"
    "<body>"
    "<h2>Price update for product {product}</h2>"
    "<ul>"
    "<li>Current price: {current}</li>"
    "<li>Highest price: {highest}</li>"
    "<li>Lowest price: {lowest}</li>"
    "</ul>"
    "<h3>Price history</h3>"
    "<table>"
    "<tr><th>Date</th><th>Price</th></tr>"
    "{rows}"
    "</table>"
    "</body>"
    "</html>"
)


def render_price_history(context: Mapping[str, Any]) -> str:
    """Render the template context from ``NotificationPayload``.

    History rows appear in the order given. Raises ``KeyError`` if a
    required field is missing.
    """
    rows = "".join(
        _ROW.format(
            date=escape(str(point["date"])),
            price=escape(str(point["price"])),
        )
        for point in context["price_history"]
    )
    return _PAGE.format(
        product=escape(str(context["product_name"])),
        current=escape(str(context["current_price"])),
        highest=escape(str(context["highest_price"])),
        lowest=escape(str(context["lowest_price"])),
        rows=rows,
    )
