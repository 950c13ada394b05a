# beauty_bot/routes/__init__.py
"""
Blueprint auto-registration.

Put any flask.Blueprint in `beauty_bot/routes/<name>.py`
with the variable name **bp** and it will be discovered &
registered when `register_routes(app)` is called.

The app factory (beauty_bot/__init__.py) stores shared
objects like `pipeline` and `keyword_cache` into `app.extensions`
so the individual route modules can access them via
`from flask import current_app`.
"""

from __future__ import annotations

import importlib
import logging
import pkgutil
from types import ModuleType

from flask import Blueprint, Flask

log = logging.getLogger(__name__)


def register_routes(app: Flask, url_prefix: str = "/api") -> None:
    for _finder, name, _ in pkgutil.iter_modules(__path__):
        module: ModuleType = importlib.import_module(f"{__name__}.{name}")
        bp: Blueprint | None = getattr(module, "bp", None)
        if isinstance(bp, Blueprint):
            app.register_blueprint(bp, url_prefix=url_prefix)
            log.info(f"REGISTER_ROUTES | blueprint={name} | prefix={url_prefix}")
