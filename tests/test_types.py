from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from streamsearch.types import AssistantTurn, ProductAttachment, SizePriceTable
from tests.fakes import product_data


def test_product_attachment_reads_backend_field_names() -> None:
    attachment = ProductAttachment.model_validate(product_data(12, "Bánh flan", discount_percentage=15))

    assert attachment.product_id == "12"
    assert attachment.product_code == "P012"
    assert attachment.category == "Bánh ngọt"
    assert attachment.image_ref == "https://cdn.test/12.png"
    assert attachment.rating == 4.5
    assert attachment.rating_count == 12
    assert attachment.order_count == 40
    assert attachment.discount_percent == 15
    assert attachment.size_price_table.entries() == [("S", 25000), ("M", 30000)]


def test_product_attachment_ignores_unknown_fields_and_is_frozen() -> None:
    attachment = ProductAttachment.model_validate({"product_id": "x1", "product_name": "Trà", "shelf": "A3"})

    assert attachment.category == ""
    assert attachment.size_price_table == SizePriceTable()
    with pytest.raises(ValidationError):
        attachment.name = "Cà phê"  # type: ignore[misc]


def test_size_price_table_accepts_object_form() -> None:
    table = SizePriceTable.parse({"product_sizes": "S|M|L", "product_prices": "10000|15000"})

    assert table.has_multiple_sizes
    assert table.entries() == [("S", 10000), ("M", 15000), ("L", 10000)]


def test_size_price_table_single_price() -> None:
    table = SizePriceTable.parse(json.dumps({"product_sizes": "Hộp", "product_prices": 45000}))

    assert not table.has_multiple_sizes
    assert table.entries() == [("Hộp", 45000)]


@pytest.mark.parametrize("value", [None, "{broken", 17, {"product_prices": "abc"}])
def test_size_price_table_falls_back_to_standard(value: object) -> None:
    assert SizePriceTable.parse(value).entries() == [("Standard", 0)]


def test_assistant_turn_is_immutable() -> None:
    turn = AssistantTurn(answer_text="xin chào")
    with pytest.raises(ValidationError):
        turn.answer_text = "changed"  # type: ignore[misc]
