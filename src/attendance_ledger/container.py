from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .analytics.service import AnalyticsService
from .common.datetime_utils import today_local
from .core.constants import DEFAULT_CACHE_NAMESPACE, DEFAULT_REMOTE_TIMEOUT_SECONDS, DEFAULT_RISK_THRESHOLD
from .roster.model import default_bimesters
from .sync.cache import CacheStore, JsonFileCache
from .sync.dispatcher import BackgroundLoop, LoopDispatcher
from .sync.remote import AppsScriptRemoteStore, RemoteStore
from .sync.service import SchoolDataService


@dataclass(frozen=True)
class Container:
    io_loop: BackgroundLoop
    dispatcher: LoopDispatcher

    cache: CacheStore
    remote: RemoteStore

    data_service: SchoolDataService
    analytics_service: AnalyticsService


def build_container(
    *,
    settings: dict,
    cache: Optional[CacheStore] = None,
    remote: Optional[RemoteStore] = None,
) -> Container:
    io_loop = BackgroundLoop().start()
    dispatcher = LoopDispatcher(io_loop.loop)

    cache = cache or JsonFileCache(
        str(settings.get("CACHE_DIR", ".cache")),
        namespace=str(settings.get("CACHE_NAMESPACE", DEFAULT_CACHE_NAMESPACE)),
    )
    remote = remote or AppsScriptRemoteStore(
        str(settings.get("REMOTE_URL", "")),
        timeout=float(settings.get("REMOTE_TIMEOUT_SECONDS", DEFAULT_REMOTE_TIMEOUT_SECONDS)),
    )

    data_service = SchoolDataService(
        cache=cache,
        remote=remote,
        dispatcher=dispatcher,
        default_bimesters=default_bimesters(today_local().year),
    )
    analytics_service = AnalyticsService(risk_threshold=float(settings.get("RISK_THRESHOLD", DEFAULT_RISK_THRESHOLD)))

    return Container(
        io_loop=io_loop,
        dispatcher=dispatcher,
        cache=cache,
        remote=remote,
        data_service=data_service,
        analytics_service=analytics_service,
    )
