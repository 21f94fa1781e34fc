"""App catalog: loads app and bundle definitions and exports lookup helpers."""

import logging

from iiskills_gateway.catalog.apps import APPS, FREE, PAID
from iiskills_gateway.catalog.bundles import BUNDLES

logger = logging.getLogger(__name__)

DEFAULT_APP_NAME = "iiskills.cloud"


def get_app(app_id: str) -> dict | None:
    """Get an app definition by ID."""
    return APPS.get(app_id)


def app_name(app_id: str) -> str:
    """Display name for an app; derived from the id for unregistered apps."""
    app = APPS.get(app_id)
    if app:
        return app["name"]
    words = app_id.replace("learn-", "", 1).replace("-", " ").split()
    return " ".join(w.capitalize() for w in words) or app_id


def is_free_app(app_id: str) -> bool:
    app = APPS.get(app_id)
    if not app:
        logger.warning("is_free_app: unknown app %r", app_id)
        return False
    return app["type"] == FREE


def requires_payment(app_id: str) -> bool:
    """Unknown apps require payment."""
    app = APPS.get(app_id)
    if not app:
        logger.warning("requires_payment: unknown app %r", app_id)
        return True
    return app["type"] == PAID


def get_bundle_for_app(app_id: str) -> dict | None:
    app = APPS.get(app_id)
    if not app or not app.get("bundle_id"):
        return None
    return BUNDLES.get(app["bundle_id"])


def get_apps_to_unlock(app_id: str) -> list[str]:
    """All apps unlocked by purchasing app_id (its bundle, or just itself)."""
    bundle = get_bundle_for_app(app_id)
    if bundle:
        return list(bundle["apps"])
    return [app_id]


def get_free_apps() -> list[str]:
    return [a["id"] for a in APPS.values() if a["type"] == FREE]


def get_paid_apps() -> list[str]:
    return [a["id"] for a in APPS.values() if a["type"] == PAID]
