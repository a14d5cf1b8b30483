"""Helpers that convert product-search API payloads into internal models."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

import orjson

from storeparser.collector.stats import SkippedItem
from storeparser.errors import (
    ExtractionError,
    MalformedDocumentError,
    MalformedFieldError,
    MissingFieldError,
)
from storeparser.models import Price, Product, colors_from_names
from storeparser.normalize import from_minor_units

LOGGER = logging.getLogger(__name__)


def parse_document(body: str | bytes) -> Dict[str, Any]:
    """Decode a JSON response body."""
    try:
        return orjson.loads(body)
    except orjson.JSONDecodeError as exc:
        raise MalformedDocumentError(f"response is not valid JSON: {exc}") from exc


def extract_entities(document: Any) -> List[Any]:
    """Return the entity list of a search-results document."""
    if not isinstance(document, dict):
        raise MalformedDocumentError("document root must be an object")
    entities = document.get("entities")
    if not isinstance(entities, list):
        raise MalformedDocumentError("document has no 'entities' list")
    return entities


def _dig(node: Any, *path: str) -> Any:
    current = node
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def _get_entity_id(entity: Dict[str, Any]) -> int:
    value = entity.get("id")
    if value is None or str(value).strip() == "":
        raise MissingFieldError("id")
    try:
        return int(str(value).strip())
    except ValueError:
        raise MalformedFieldError(f"entity id is not an integer: {value!r}") from None


def _first_label(values: Any) -> Optional[str]:
    # The source ships one primary localized value; either a list or the value itself.
    if isinstance(values, list):
        values = values[0] if values else None
    if isinstance(values, dict):
        label = values.get("label")
        if label is not None and str(label).strip():
            return str(label).strip()
    return None


def _attribute_label(entity: Dict[str, Any], key: str, field: str, ref: str) -> str:
    label = _first_label(_dig(entity, "attributes", key, "values"))
    if label is None:
        raise MissingFieldError(field, ref)
    return label


def _color_labels(entity: Dict[str, Any]) -> List[str]:
    values = _dig(entity, "attributes", "colorDetail", "values")
    if isinstance(values, dict):
        values = [values]
    if not isinstance(values, list):
        return []
    return [str(value["label"]) for value in values if isinstance(value, dict) and value.get("label")]


def _extract_price(entity: Dict[str, Any], ref: str) -> Price:
    minimum = _dig(entity, "priceRange", "min")
    if not isinstance(minimum, dict) or minimum.get("withTax") is None:
        raise MissingFieldError("price", ref)
    currency = minimum.get("currencyCode")
    if not currency:
        raise MissingFieldError("price.currencyCode", ref)
    return Price(value=from_minor_units(minimum["withTax"]), currency_code=str(currency))


def to_product(entity: Any) -> Product:
    """Map a raw API entity to Product.

    Raises
    ------
    MissingFieldError
        If id, brand, name or price are absent
    MalformedFieldError
        If the id or price cannot be parsed
    """
    if not isinstance(entity, dict):
        raise MalformedFieldError(f"entity must be an object, got {type(entity).__name__}")
    product_id = _get_entity_id(entity)
    ref = f"entity {product_id}"
    return Product(
        id=product_id,
        brand_name=_attribute_label(entity, "brand", "brandName", ref),
        product_name=_attribute_label(entity, "name", "productName", ref),
        colors=colors_from_names(_color_labels(entity)),
        price=_extract_price(entity, ref),
    )


def _entity_ref(entity: Any, index: int) -> str:
    if isinstance(entity, dict) and entity.get("id") is not None:
        return f"entity {entity.get('id')}"
    return f"entity #{index}"


def extract_all(document: Any) -> Tuple[List[Product], List[SkippedItem]]:
    """Map every entity, skipping the ones that cannot be mapped.

    Returns
    -------
    tuple[list[Product], list[SkippedItem]]
        Products in document order and the entities that were skipped
    """
    products: List[Product] = []
    skipped: List[SkippedItem] = []
    for index, entity in enumerate(extract_entities(document)):
        try:
            products.append(to_product(entity))
        except ExtractionError as exc:
            ref = _entity_ref(entity, index)
            LOGGER.warning("Skipping %s: %s", ref, exc)
            skipped.append(SkippedItem(ref=ref, reason=str(exc)))
    return products, skipped
