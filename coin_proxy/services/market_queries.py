"""Canonical request keys for the upstream queries the proxy forwards.

A key is the endpoint path plus its query parameters sorted by name, so the
same query always maps to the same cache entry.
"""

from urllib.parse import quote, urlencode

PRICE_FIELDS = ("prices", "market_caps", "total_volumes")
DEFAULT_PRICE_FIELD = "prices"


def build_request_key(path: str, params: dict[str, object] | None = None) -> str:
    path = path.strip("/")
    if not params:
        return path
    query = urlencode(sorted((name, _param_value(value)) for name, value in params.items()))
    return f"{path}?{query}"


def _param_value(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def markets_key(vs_currency: str = "usd", per_page: int = 100, page: int = 1) -> str:
    return build_request_key(
        "coins/markets",
        {
            "vs_currency": vs_currency,
            "order": "market_cap_desc",
            "per_page": per_page,
            "page": page,
            "sparkline": False,
        },
    )


def coin_detail_key(coin_id: str) -> str:
    return build_request_key(f"coins/{quote(coin_id, safe='')}")


def market_chart_key(coin_id: str, days: str | int = 30, vs_currency: str = "usd") -> str:
    return build_request_key(
        f"coins/{quote(coin_id, safe='')}/market_chart",
        {"vs_currency": vs_currency, "days": days, "interval": "daily"},
    )


def select_price_field(payload: dict, price_type: str | None) -> object:
    """Pick one series out of a market-chart payload; unknown types fall back to prices."""
    field = price_type if price_type in PRICE_FIELDS else DEFAULT_PRICE_FIELD
    return payload.get(field)
