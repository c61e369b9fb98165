import typing
from datetime import date, datetime

import pytest

from document_framework.storages.documents import apply_changes, changed_values, create_document, to_storage
from document_framework.store import Store


@pytest.mark.parametrize(
    "value, expected",
    [
        (datetime(2020, 1, 2, 3, 4, 5), "2020-01-02T03:04:05"),
        (date(2020, 1, 2), "2020-01-02"),
        ((1, date(2020, 1, 2)), [1, "2020-01-02"]),
        ({"nested": [datetime(2020, 1, 2)]}, {"nested": ["2020-01-02T00:00:00"]}),
        ("text", "text"),
        (None, None),
    ],
)
def test_to_storage_of_plain_values(value: typing.Any, expected: typing.Any) -> None:
    assert to_storage(value) == expected


def test_to_storage_of_models_and_embeds(store: Store) -> None:
    person = store.create("person", "p1")
    widget = store.create("widget", "w1")
    address = widget.create_embed_for("address")
    address.set("street", "Main")

    assert to_storage(person) == {"type": "person", "id": "p1"}
    assert to_storage(address) == {"street": "Main"}
    assert to_storage(person.get_collection("pets")) == []


def test_create_document(store: Store) -> None:
    widget = store.create("widget", "w1")
    widget.apply({"name": "Gear", "createdDate": "2020-01-02", "address": {"street": "Main"}})
    tag = widget.create_embed_for("tags")
    tag.set("label", "new")
    widget.push_embed("tags", tag)

    assert create_document(widget) == {
        "name": "Gear",
        "count": 0,
        "color": "blue",
        "createdDate": "2020-01-02T00:00:00",
        "address": {"street": "Main"},
        "tags": [{"label": "new"}],
    }


def test_changed_values_and_apply_changes(store: Store, seed: typing.Callable) -> None:
    seed("widget", "w1", name="Gear", count=1, tags=[{"label": "a"}], address={"street": "Main"})
    widget = store.find("widget", "w1")
    widget.clear("name")
    widget.set("count", 2)
    widget.clear("tags")
    widget.get("address").set("city", "Oslo")

    assert changed_values(widget) == {
        "name": None,
        "count": 2,
        "tags": None,
        "address": {"street": "Main", "city": "Oslo"},
    }
    document = {"name": "Gear", "count": 1, "tags": [{"label": "a"}], "address": {"street": "Main"}, "other": 1}
    assert apply_changes(document, widget) == {
        "count": 2,
        "address": {"street": "Main", "city": "Oslo"},
        "other": 1,
    }
    assert document["name"] == "Gear"
