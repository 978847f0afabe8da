"""Typed models shared by the streaming search engine."""

from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Annotated, Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

DEFAULT_SIZE = "Standard"


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _parse_price(value: Any) -> int | float:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip() or "0")
        except ValueError:
            try:
                return float(value)
            except ValueError:
                return 0
    return 0


class SizePriceTable(BaseModel):
    """Sizes offered for a product with the price of each one.

    The backend sends ``sizes_prices`` either as a JSON string or as an object with
    ``product_sizes`` ("S|M|L") and ``product_prices`` (a number or "10000|15000|20000").
    Anything unreadable collapses to a single standard size priced at zero.
    """

    model_config = ConfigDict(frozen=True)

    sizes: tuple[str, ...] = (DEFAULT_SIZE,)
    prices: tuple[int | float, ...] = (0,)

    @classmethod
    def parse(cls, value: Any) -> SizePriceTable:
        if isinstance(value, SizePriceTable):
            return value
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError:
                return cls()
        if not isinstance(value, Mapping):
            return cls()

        raw_sizes = value.get("product_sizes")
        sizes = tuple(raw_sizes.split("|")) if isinstance(raw_sizes, str) and raw_sizes else (DEFAULT_SIZE,)

        raw_prices = value.get("product_prices")
        if isinstance(raw_prices, str) and "|" in raw_prices:
            prices = tuple(_parse_price(item) for item in raw_prices.split("|"))
        else:
            prices = (_parse_price(raw_prices),)
        return cls(sizes=sizes, prices=prices)

    @property
    def has_multiple_sizes(self) -> bool:
        return len(self.sizes) > 1 and self.sizes[0] != DEFAULT_SIZE

    def price_for(self, index: int) -> int | float:
        if 0 <= index < len(self.prices):
            return self.prices[index]
        return self.prices[0] if self.prices else 0

    def entries(self) -> list[tuple[str, int | float]]:
        return [(size, self.price_for(index)) for index, size in enumerate(self.sizes)]


class ProductAttachment(BaseModel):
    """A recommended product pushed alongside an answer."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    product_id: str = Field(validation_alias=AliasChoices("product_id", "productId"))
    name: str = Field(validation_alias=AliasChoices("product_name", "name"))
    category: str = Field(default="", validation_alias=AliasChoices("category_name", "category"))
    image_ref: str | None = Field(default=None, validation_alias=AliasChoices("image_url", "image_ref"))
    size_price_table: SizePriceTable = Field(
        default_factory=SizePriceTable,
        validation_alias=AliasChoices("sizes_prices", "size_price_table"),
    )
    rating: float | None = Field(default=None, validation_alias=AliasChoices("overall_stars", "rating"))
    rating_count: int | None = Field(default=None, validation_alias=AliasChoices("total_ratings", "rating_count"))
    order_count: int | None = Field(default=None, validation_alias=AliasChoices("total_orders", "order_count"))
    discount_percent: float | None = Field(
        default=None,
        validation_alias=AliasChoices("discount_percentage", "discount_percent"),
    )
    product_code: str | None = None
    description: str | None = None

    @field_validator("product_id", "product_code", mode="before")
    @classmethod
    def _coerce_identifier(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("category", mode="before")
    @classmethod
    def _coerce_category(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("size_price_table", mode="before")
    @classmethod
    def _parse_size_price_table(cls, value: Any) -> SizePriceTable:
        return SizePriceTable.parse(value)


class UserTurn(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["user"] = "user"
    text: str
    issued_at: datetime = Field(default_factory=_utc_now)


class AssistantTurn(BaseModel):
    """A finished assistant response. Built once when the terminal marker arrives."""

    model_config = ConfigDict(frozen=True)

    role: Literal["assistant"] = "assistant"
    answer_text: str
    products: tuple[ProductAttachment, ...] = ()
    thinking_text: str = ""
    completed_at: datetime = Field(default_factory=_utc_now)


ConversationTurn = Annotated[UserTurn | AssistantTurn, Field(discriminator="role")]


class PendingTurnSnapshot(BaseModel):
    """Read-only view of the in-flight turn."""

    model_config = ConfigDict(frozen=True)

    thinking_text: str = ""
    answer_text: str = ""
    products: tuple[ProductAttachment, ...] = ()
    is_thinking: bool = False


class RevealEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: str
    index: int


__all__ = [
    "AssistantTurn",
    "ConversationTurn",
    "PendingTurnSnapshot",
    "ProductAttachment",
    "RevealEvent",
    "SizePriceTable",
    "UserTurn",
]
