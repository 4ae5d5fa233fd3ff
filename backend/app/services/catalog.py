"""
Subscription catalog loading.

Plans and payment channels are configuration data, not computed. The defaults
from constants.py are used unless CATALOG_PATH points to a JSON file of the
form {"plans": [...], "payment_channels": [...]}. A missing or malformed
catalog is fatal at startup.
"""

import json
from pathlib import Path

import structlog
from pydantic import ValidationError

from app.constants import DEFAULT_PAYMENT_CHANNELS, DEFAULT_PLANS
from app.errors import CatalogError
from app.models.subscription import Catalog

logger = structlog.get_logger(__name__)


def parse_catalog(data: dict) -> Catalog:
    """Validate raw catalog data.

    Raises:
        CatalogError: plans or channels missing, empty, invalid or duplicated.
    """
    try:
        catalog = Catalog.model_validate(data)
    except ValidationError as e:
        raise CatalogError(f"Invalid subscription catalog: {e}") from e

    plan_ids = [p.id for p in catalog.plans]
    channel_ids = [c.id for c in catalog.payment_channels]
    if len(set(plan_ids)) != len(plan_ids):
        raise CatalogError(f"Duplicate plan ids in catalog: {plan_ids}")
    if len(set(channel_ids)) != len(channel_ids):
        raise CatalogError(f"Duplicate payment channel ids in catalog: {channel_ids}")
    return catalog


def load_catalog(path: str = "") -> Catalog:
    """Load the catalog from path, or the built-in defaults when path is empty."""
    if not path:
        return parse_catalog(
            {"plans": DEFAULT_PLANS, "payment_channels": DEFAULT_PAYMENT_CHANNELS}
        )

    catalog_file = Path(path)
    try:
        raw = json.loads(catalog_file.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise CatalogError(f"Catalog file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise CatalogError(f"Catalog file is not valid JSON: {path}") from e

    if not isinstance(raw, dict):
        raise CatalogError("Catalog file must contain a JSON object")

    catalog = parse_catalog(raw)
    logger.info(
        "catalog_loaded",
        path=path,
        plans=len(catalog.plans),
        payment_channels=len(catalog.payment_channels),
    )
    return catalog
