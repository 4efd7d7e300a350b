from __future__ import annotations

import pytest
from pydantic import ValidationError

from directory_sync.domain.models import Record, RemoteRecord, parse_remote_records


def test_remote_record_ignores_extra_keys_and_maps_to_record():
    remote = RemoteRecord.model_validate(
        {
            "id": 1,
            "name": "Leanne Graham",
            "username": "Bret",
            "email": "Sincere@april.biz",
            "address": {"city": "Gwenborough"},
            "phone": "1-770-736-8031 x56442",
        }
    )

    assert remote.to_record() == Record(
        id=1, name="Leanne Graham", email="Sincere@april.biz", phone="1-770-736-8031 x56442"
    )


def test_remote_record_coerces_numeric_string_id_and_null_contact_fields():
    remote = RemoteRecord.model_validate({"id": "7", "name": "Gwen", "email": None})

    assert remote.id == 7
    assert remote.email == ""
    assert remote.phone == ""


@pytest.mark.parametrize(
    "item",
    [
        {"name": "No Id"},
        {"id": "seven", "name": "Bad Id"},
        {"id": 3, "name": "   "},
        {"id": 4, "name": 42},
        {"id": 5},
        {"id": 2**63, "name": "Too Big"},
        {"id": -(2**63) - 1, "name": "Too Small"},
        "not-an-object",
    ],
)
def test_remote_record_rejects_malformed_items(item):
    with pytest.raises(ValidationError):
        RemoteRecord.model_validate(item)


def test_parse_remote_records_skips_malformed_items_and_keeps_order():
    payload = [
        {"id": 2, "name": "Bob"},
        {"id": "x", "name": "Broken"},
        {"id": 1, "name": "Alice"},
        None,
    ]

    records, skipped = parse_remote_records(payload)

    assert [r.id for r in records] == [2, 1]
    assert skipped == [1, 3]


def test_record_is_frozen():
    record = Record(id=1, name="Alice", email="a@x.com", phone="1")
    with pytest.raises(ValidationError):
        record.name = "Mallory"  # type: ignore[misc]


def test_parse_remote_records_skips_ids_outside_the_key_range():
    payload = [
        {"id": 1, "name": "Alice"},
        {"id": 2**63, "name": "Huge"},
        {"id": 2**63 - 1, "name": "Largest"},
    ]

    records, skipped = parse_remote_records(payload)

    assert [r.name for r in records] == ["Alice", "Largest"]
    assert skipped == [1]
