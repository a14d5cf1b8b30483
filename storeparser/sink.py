"""JSON file sink for extracted products."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List

import orjson
from pydantic import ValidationError

from storeparser.errors import MalformedDocumentError
from storeparser.models import Product

LOGGER = logging.getLogger(__name__)


def output_path(base_name: str, output_dir: str | Path = ".") -> Path:
    return Path(output_dir) / f"{base_name}.json"


def write_products(
    products: Iterable[Product],
    base_name: str,
    output_dir: str | Path = ".",
) -> Path:
    """Write products as a pretty-printed JSON array to ``<base_name>.json``.

    Prices are written as two-digit decimal strings, colors sorted by name.
    """
    path = output_path(base_name, output_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = [product.model_dump(mode="json", by_alias=True) for product in products]
    path.write_bytes(orjson.dumps(payload, option=orjson.OPT_INDENT_2) + b"\n")
    LOGGER.info("Wrote %d product(s) to %s", len(payload), path)
    return path


def read_products(path: str | Path) -> List[Product]:
    """Load products back from a file written by ``write_products``."""
    try:
        payload = orjson.loads(Path(path).read_bytes())
    except orjson.JSONDecodeError as exc:
        raise MalformedDocumentError(f"{path} is not valid JSON: {exc}") from exc
    if not isinstance(payload, list):
        raise MalformedDocumentError(f"{path} must contain a JSON array")
    try:
        return [Product.model_validate(item) for item in payload]
    except ValidationError as exc:
        raise MalformedDocumentError(f"{path} holds an invalid product: {exc}") from exc
