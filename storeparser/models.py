"""Pydantic models shared by the HTML and API collectors."""
from __future__ import annotations

from decimal import Decimal
from typing import FrozenSet, Iterable, List

from pydantic import BaseModel, ConfigDict, field_serializer, field_validator
from pydantic.alias_generators import to_camel

from storeparser.normalize import clean_color_names, round_price

_MODEL_CONFIG = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)


class Color(BaseModel):
    """Color variant; equal and hashed by name only."""

    model_config = _MODEL_CONFIG

    name: str


class Price(BaseModel):
    model_config = _MODEL_CONFIG

    value: Decimal
    currency_code: str

    @field_validator("value", mode="before")
    @classmethod
    def quantize_value(cls, v):
        """Keep exactly two fractional digits, half-up."""
        return round_price(v)


class Product(BaseModel):
    model_config = _MODEL_CONFIG

    id: int
    product_name: str
    brand_name: str
    colors: FrozenSet[Color] = frozenset()
    price: Price

    @field_serializer("colors")
    def serialize_colors(self, colors: FrozenSet[Color]) -> List[Color]:
        return sorted(colors, key=lambda color: color.name)


def colors_from_names(names: Iterable[str]) -> FrozenSet[Color]:
    """Build a deduplicated color set from raw labels."""
    return frozenset(Color(name=name) for name in clean_color_names(names))
