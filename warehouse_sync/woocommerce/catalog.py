"""
Catalog expansion.

Turns a page of WooCommerce products into sellable catalog records:
simple products pass through, variable products are replaced by their
variations, grouped and external products are dropped.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional

from .client import CommerceAuthError, CommerceClientError, CommerceTransientError, WooCommerceClient

logger = logging.getLogger(__name__)


SKIPPED_TYPES = {"grouped", "external"}

# Upper volume bounds (cm³) per size category
SIZE_CATEGORIES = [
    (500, "SMALL"),
    (3000, "MEDIUM"),
    (15000, "LARGE"),
    (50000, "XLARGE"),
]


@dataclass
class CatalogRecord:
    """One sellable item as it will be stored locally."""

    external_id: int
    name: str
    product_type: str
    sku: Optional[str]
    description: Optional[str]
    price: Decimal
    stock_qty: int
    weight: Optional[float]
    length: Optional[float]
    width: Optional[float]
    height: Optional[float]
    image_url: Optional[str]
    is_active: bool
    external_parent_id: Optional[int] = None
    variant_attributes: Dict[str, str] = field(default_factory=dict)

    @property
    def size_category(self) -> Optional[str]:
        return size_category(self.length, self.width, self.height)


@dataclass
class CatalogFailure:
    """An upstream catalog item that could not be expanded."""

    external_id: Any
    error: str


@dataclass
class CatalogPage:
    """Expanded contents of one upstream product page."""

    records: List[CatalogRecord] = field(default_factory=list)
    variable_parent_ids: List[int] = field(default_factory=list)
    skipped: int = 0
    failures: List[CatalogFailure] = field(default_factory=list)


def size_category(
    length: Optional[float],
    width: Optional[float],
    height: Optional[float]
) -> Optional[str]:
    """Bucket a product by volume; None when any dimension is missing."""
    if not length or not width or not height:
        return None
    volume = length * width * height
    for bound, name in SIZE_CATEGORIES:
        if volume <= bound:
            return name
    return "OVERSIZED"


def _to_float(value: Any) -> Optional[float]:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_price(value: Any) -> Decimal:
    if value in (None, ""):
        return Decimal("0")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return Decimal("0")


def _dimensions(item: Dict[str, Any]) -> Dict[str, Any]:
    return item.get("dimensions") or {}


def _first_image(product: Dict[str, Any]) -> Optional[str]:
    images = product.get("images") or []
    return images[0].get("src") if images else None


def simple_record(product: Dict[str, Any]) -> CatalogRecord:
    dims = _dimensions(product)
    return CatalogRecord(
        external_id=int(product["id"]),
        name=product.get("name") or "",
        product_type="simple",
        sku=product.get("sku") or None,
        description=product.get("short_description") or None,
        price=_to_price(product.get("price")),
        stock_qty=product.get("stock_quantity") or 0,
        weight=_to_float(product.get("weight")),
        length=_to_float(dims.get("length")),
        width=_to_float(dims.get("width")),
        height=_to_float(dims.get("height")),
        image_url=_first_image(product),
        is_active=product.get("status") == "publish",
    )


def variation_record(parent: Dict[str, Any], variation: Dict[str, Any]) -> CatalogRecord:
    """Build a record for one variation, falling back to parent fields where blank."""
    attributes = variation.get("attributes") or []
    options = " / ".join(a.get("option", "") for a in attributes if a.get("option"))
    parent_name = parent.get("name") or ""

    dims = _dimensions(variation)
    parent_dims = _dimensions(parent)
    image = variation.get("image") or {}

    def dimension(key: str) -> Optional[float]:
        value = _to_float(dims.get(key))
        return value if value is not None else _to_float(parent_dims.get(key))

    weight = _to_float(variation.get("weight"))
    if weight is None:
        weight = _to_float(parent.get("weight"))

    return CatalogRecord(
        external_id=int(variation["id"]),
        external_parent_id=int(parent["id"]),
        name=f"{parent_name} - {options}" if options else parent_name,
        product_type="variation",
        sku=variation.get("sku") or None,
        description=parent.get("short_description") or None,
        price=_to_price(variation.get("price") or parent.get("price")),
        stock_qty=variation.get("stock_quantity") or 0,
        weight=weight,
        length=dimension("length"),
        width=dimension("width"),
        height=dimension("height"),
        image_url=image.get("src") or _first_image(parent),
        is_active=variation.get("status") == "publish" or parent.get("status") == "publish",
        variant_attributes={a["name"]: a.get("option", "") for a in attributes if a.get("name")},
    )


async def _fetch_variations(
    client: WooCommerceClient,
    product_id: int,
    variation_page_size: int,
) -> List[Dict[str, Any]]:
    variations: List[Dict[str, Any]] = []
    var_page = 1
    while True:
        batch = await client.list_variations(product_id, page=var_page, per_page=variation_page_size)
        if not batch:
            break
        variations.extend(batch)
        var_page += 1

    logger.debug(f"Expanded variable product {product_id} ({var_page - 1} variation pages)")
    return variations


def _add_record(page: CatalogPage, external_id: Any, build: Callable[..., CatalogRecord], *args) -> None:
    try:
        page.records.append(build(*args))
    except (KeyError, TypeError, ValueError) as e:
        page.failures.append(CatalogFailure(external_id=external_id, error=str(e)))
        logger.warning(f"Skipping malformed catalog record {external_id}: {e}")


async def expand_page(
    client: WooCommerceClient,
    products: List[Dict[str, Any]],
    variation_page_size: int = 100,
) -> CatalogPage:
    """
    Expand a page of upstream products into sellable records.

    A malformed record, or a variable product whose variations cannot be
    read, lands in `failures` and the rest of the page is still expanded.
    Auth and transient upstream errors propagate and end the walk.
    """
    page = CatalogPage()

    for product in products:
        product_type = product.get("type", "simple")

        if product_type in SKIPPED_TYPES:
            page.skipped += 1
            continue

        if product_type != "variable":
            _add_record(page, product.get("id"), simple_record, product)
            continue

        try:
            parent_id = int(product["id"])
            variations = await _fetch_variations(client, parent_id, variation_page_size)
        except (CommerceAuthError, CommerceTransientError):
            raise
        except (CommerceClientError, KeyError, TypeError, ValueError) as e:
            page.failures.append(CatalogFailure(external_id=product.get("id"), error=str(e)))
            logger.warning(f"Could not expand variable product {product.get('id')}: {e}")
            continue

        page.variable_parent_ids.append(parent_id)
        for variation in variations:
            _add_record(page, variation.get("id"), variation_record, product, variation)

    return page
