from __future__ import annotations

import importlib
import logging
from typing import Optional

from dotenv import load_dotenv
from flask import Flask

from .config import get_settings_module
from .container import build_container
from .analytics.controller import register as register_analytics
from .attendance.controller import register as register_attendance
from .roster.controller import register as register_roster
from .sync.cache import CacheStore
from .sync.controller import register as register_sync
from .sync.remote import RemoteStore

logger = logging.getLogger(__name__)


def load_settings(overrides: Optional[dict] = None) -> dict:
    settings_module = get_settings_module()
    module = importlib.import_module(settings_module)
    settings = {name: getattr(module, name) for name in dir(module) if name.isupper()}
    settings["SETTINGS_MODULE"] = settings_module
    settings.update(overrides or {})
    return settings


def create_app(
    *,
    settings_overrides: Optional[dict] = None,
    cache: Optional[CacheStore] = None,
    remote: Optional[RemoteStore] = None,
) -> Flask:
    load_dotenv(override=False)
    settings = load_settings(settings_overrides)

    logging.basicConfig(
        level=getattr(logging, str(settings.get("LOG_LEVEL", "INFO")).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = Flask(__name__)
    app.secret_key = settings.get("SECRET_KEY")
    app.config["DEBUG"] = bool(settings.get("DEBUG", False))
    app.config["TESTING"] = bool(settings.get("TESTING", False))

    container = build_container(settings=settings, cache=cache, remote=remote)
    app.extensions["attendance_ledger"] = container

    logger.info(
        "settings=%s remote=%s cache=%s/%s",
        settings["SETTINGS_MODULE"],
        settings.get("REMOTE_URL") or "<none>",
        settings.get("CACHE_DIR"),
        settings.get("CACHE_NAMESPACE"),
    )

    if settings.get("AUTO_REFRESH", False):
        container.data_service.start()
    else:
        container.data_service.bootstrap()

    register_sync(app, container)
    register_attendance(app, container)
    register_roster(app, container)
    register_analytics(app, container)

    return app


if __name__ == "__main__":
    # Mutations assume one caller at a time; keep the dev server single-threaded.
    create_app().run(threaded=False)
