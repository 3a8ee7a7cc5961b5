from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any


def commafy(value: Any, *, decimals: int = 0, blank_for_none: bool = False) -> str:
    """
    Thousands separators with HALF_UP rounding.
    Accepts int/float/Decimal or numeric strings like "1234.5" or "$1,234".
    """
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return "" if blank_for_none else f"{0:,.{decimals}f}"

    cleaned = str(value).strip().replace(",", "").replace("$", "")
    try:
        d = Decimal(cleaned)
    except InvalidOperation:
        return str(value)
    if not d.is_finite():
        return str(value)

    if decimals > 0:
        d = d.quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP)
        out = f"{d:,.{decimals}f}"
    else:
        out = f"{int(d.to_integral_value(rounding=ROUND_HALF_UP)):,}"

    if out.startswith("-") and out.strip("-0.,") == "":
        out = out[1:]
    return out


def usd(value: Any, decimals: int = 0) -> str:
    return f"${commafy(value, decimals=decimals)}"


def short_date(value: Any) -> str:
    if isinstance(value, (datetime, date)):
        return value.strftime("%b %d, %Y")
    return ""


def register_filters(app: Any) -> None:
    app.jinja_env.filters["commafy"] = commafy
    app.jinja_env.filters["usd"] = usd
    app.jinja_env.filters["short_date"] = short_date
