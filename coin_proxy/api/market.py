"""Market-data endpoints proxied to the upstream API."""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query

from coin_proxy.api.deps import get_fetch_service
from coin_proxy.config import get_settings
from coin_proxy.exceptions import FetchServiceClosedError, MarketDataUnavailableError, UpstreamError
from coin_proxy.schemas.error import ErrorResponse
from coin_proxy.services.fetch_service import FetchService
from coin_proxy.services.market_queries import (
    DEFAULT_PRICE_FIELD,
    coin_detail_key,
    market_chart_key,
    markets_key,
    select_price_field,
)

settings = get_settings()
logger = logging.getLogger(__name__)
router = APIRouter(responses={500: {"model": ErrorResponse}, 429: {"model": ErrorResponse}})

FetchServiceDep = Annotated[FetchService, Depends(get_fetch_service)]


async def _fetch_or_fail(service: FetchService, key: str, message: str) -> Any:
    try:
        return await service.fetch(key)
    except (UpstreamError, FetchServiceClosedError) as e:
        logger.warning(f"{message}: {e}")
        raise MarketDataUnavailableError(message) from e


@router.get("/coins")
async def list_coins(service: FetchServiceDep) -> Any:
    """Top coins by market cap."""
    key = markets_key(vs_currency=settings.vs_currency, per_page=settings.markets_per_page)
    return await _fetch_or_fail(service, key, "Failed to fetch coin data")


@router.get("/coin/{coin_id}")
async def get_coin(coin_id: str, service: FetchServiceDep) -> Any:
    """Full detail for one coin."""
    key = coin_detail_key(coin_id)
    return await _fetch_or_fail(service, key, f"Failed to fetch data for coin: {coin_id}")


@router.get("/prices/{coin_id}")
async def get_prices(
    coin_id: str,
    service: FetchServiceDep,
    days: str = Query("30"),
    price_type: str = Query(DEFAULT_PRICE_FIELD, alias="priceType"),
) -> Any:
    """Daily history for one coin: prices, market_caps or total_volumes."""
    key = market_chart_key(coin_id, days=days, vs_currency=settings.vs_currency)
    payload = await _fetch_or_fail(service, key, f"Failed to fetch price data for {coin_id}")
    if not isinstance(payload, dict):
        raise MarketDataUnavailableError(f"Failed to fetch price data for {coin_id}")
    return select_price_field(payload, price_type)
