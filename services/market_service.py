"""
Exchange rate snapshot for the dashboard.

Usage:
    from services.market_service import get_market_snapshot

    snapshot = get_market_snapshot()
    if snapshot:
        snapshot['usd_try'], snapshot['eur_try'], snapshot['eur_usd'], snapshot['date']
"""

import logging
import time

import requests
from flask import current_app, has_app_context

logger = logging.getLogger(__name__)

DEFAULT_RATES_URL = "https://api.frankfurter.app/latest"
REQUEST_TIMEOUT = 10

# (key, base currency, quote currency)
RATE_PAIRS = (
    ('usd_try', 'USD', 'TRY'),
    ('eur_try', 'EUR', 'TRY'),
    ('eur_usd', 'EUR', 'USD'),
)

# Rates are refreshed at most every 30 minutes: {key: (value, expiry_timestamp)}
_CACHE_TIMEOUT = 1800
_cache = {}


def _get_cached(key):
    if key in _cache:
        value, expiry = _cache[key]
        if time.time() < expiry:
            return value
        del _cache[key]
    return None


def _set_cached(key, value, timeout=_CACHE_TIMEOUT):
    _cache[key] = (value, time.time() + timeout)


def clear_market_cache():
    _cache.clear()


def _fetch_rate(base_url, base, quote):
    response = requests.get(base_url, params={'from': base, 'to': quote}, timeout=REQUEST_TIMEOUT)
    response.raise_for_status()
    payload = response.json()
    rates = payload.get('rates') or {}
    value = rates.get(quote)
    return (float(value) if value is not None else None), payload.get('date')


def get_market_snapshot():
    """
    Fetch USD/TRY, EUR/TRY and EUR/USD.

    Returns:
        dict with usd_try, eur_try, eur_usd and date, or None if any request failed
    """
    cached = _get_cached('market_snapshot')
    if cached is not None:
        return cached

    base_url = DEFAULT_RATES_URL
    if has_app_context():
        base_url = current_app.config.get('MARKET_RATES_URL') or DEFAULT_RATES_URL

    snapshot = {'date': None}
    try:
        for key, base, quote in RATE_PAIRS:
            value, rate_date = _fetch_rate(base_url, base, quote)
            snapshot[key] = value
            snapshot['date'] = snapshot['date'] or rate_date
    except (requests.RequestException, ValueError) as e:
        logger.warning(f"Piyasa verileri alınamadı: {str(e)}")
        return None

    _set_cached('market_snapshot', snapshot)
    return snapshot
