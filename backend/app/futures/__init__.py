"""Futures series and indicator subsystem.

Public API:
    SeriesResponse / KDResponse / MACDResponse - Immutable series models
    SeriesKind            - kline | kd | macd
    ExpiringCache         - Bounded TTL cache gating upstream re-fetch
    compute_kd / compute_macd / ema - Indicator math
    FuturesDataSource     - Abstract interface for upstream providers
    SinaFuturesClient     - Sina JSONP implementation of FuturesDataSource
    FuturesStore          - SQLite persistence for bars and indicators
    SeriesProvider        - Cached kline / KD / MACD reads
    SubscriptionRegistry  - Live client sessions and their subscriptions
    BroadcastLoop         - Periodic differential push to subscribers
    FuturesSettings       - FUTURES_* environment settings
    create_futures_services - Factory wiring everything together
    create_stream_router  - FastAPI router factory for the WebSocket endpoint
    create_api_router     - FastAPI router factory for the HTTP command surface
"""

from .api import create_api_router
from .broadcast import BroadcastLoop
from .cache import ExpiringCache
from .config import FuturesSettings
from .factory import FuturesServices, create_futures_services
from .indicators import compute_kd, compute_macd, ema
from .interface import FuturesDataSource
from .models import KDResponse, MACDResponse, SeriesKind, SeriesResponse
from .provider import SeriesProvider
from .sina_client import SinaFuturesClient
from .storage import FuturesStore
from .stream import create_stream_router
from .subscriptions import SubscriptionRegistry

__all__ = [
    "BroadcastLoop",
    "ExpiringCache",
    "FuturesDataSource",
    "FuturesServices",
    "FuturesSettings",
    "FuturesStore",
    "KDResponse",
    "MACDResponse",
    "SeriesKind",
    "SeriesProvider",
    "SeriesResponse",
    "SinaFuturesClient",
    "SubscriptionRegistry",
    "compute_kd",
    "compute_macd",
    "create_api_router",
    "create_futures_services",
    "create_stream_router",
    "ema",
]
