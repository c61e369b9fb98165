import typing
from datetime import datetime

import pytest

from document_framework.exceptions import (
    InvalidRelationshipType,
    InvalidResourceType,
    InvalidStateTransition,
    StoreError,
    TypeConversionError,
)
from document_framework.models import Embed, EmbedCollection, Model
from document_framework.store import Store


@pytest.fixture()
def widget(store: Store, seed: typing.Callable) -> Model:
    seed(
        "widget",
        "1",
        name="Gear",
        count="2",
        address={"street": "Main"},
        tags=[{"label": "a"}],
    )
    return store.find("widget", "1")


def test_composite_key(widget: Model) -> None:
    assert widget.type == "widget"
    assert widget.composite_key == "widget.1"
    assert repr(widget) == "<Model widget.1>"


def test_attribute_values_are_converted(widget: Model) -> None:
    assert widget.get("count") == 2

    widget.set("count", "8")
    widget.set("createdDate", "2020-01-02T03:04:05")

    assert widget.get("count") == 8
    assert widget.get("createdDate") == datetime(2020, 1, 2, 3, 4, 5)


def test_loaded_model_gets_default_values_for_missing_attributes(widget: Model) -> None:
    assert widget.get("color") == "blue"
    assert not widget.is_dirty()


def test_unknown_keys_are_ignored(widget: Model) -> None:
    widget.set("unknown", "value")

    assert widget.get("unknown") is None
    assert not widget.is_dirty()


def test_calculated_attribute(widget: Model) -> None:
    assert widget.get("label") == "Gear x2"

    widget.set("label", "something else")

    assert widget.get("label") == "Gear x2"
    assert not widget.is_dirty()


def test_dirty_tracking_cycle(widget: Model) -> None:
    widget.set("name", "Bolt")
    assert widget.is_dirty()
    assert widget.state.dirty

    widget.set("name", "Gear")
    assert not widget.is_dirty()
    assert not widget.state.dirty

    widget.set("name", "Bolt")
    widget.rollback()
    assert widget.get("name") == "Gear"
    assert not widget.state.dirty


def test_clear_attribute_is_a_removal(widget: Model) -> None:
    widget.clear("name")

    assert widget.get("name") is None
    assert widget.get_change_set()["attributes"] == {"name": {"old": "Gear", "new": None}}


def test_unsaved_fields_are_left_out_of_the_change_set(widget: Model) -> None:
    widget.set("secret", "hidden")

    assert widget.is_dirty()
    assert widget.get("secret") == "hidden"
    assert widget.get_change_set() == {
        "attributes": {},
        "embed_one": {},
        "embed_many": {},
        "has_one": {},
        "has_many": {},
    }


def test_reload_discards_pending_changes(widget: Model) -> None:
    widget.set("name", "Bolt")

    widget.reload()

    assert widget.get("name") == "Gear"
    assert not widget.is_dirty()


def test_uses_mixin(widget: Model) -> None:
    assert widget.uses_mixin("timestampable")
    assert not widget.uses_mixin("sluggable")


def test_has_many_can_not_be_set_directly(store: Store) -> None:
    person = store.create("person")

    with pytest.raises(InvalidStateTransition):
        person.set("pets", [])


def test_embed_many_can_not_be_set_directly(widget: Model) -> None:
    with pytest.raises(InvalidStateTransition):
        widget.set("tags", [])


def test_placeholder_loads_on_first_access(store: Store, seed: typing.Callable) -> None:
    seed("bird", "1", name="Tweety")
    bird = store.load_proxy_model("bird", "1")
    assert bird.state.empty

    assert bird.get("name") == "Tweety"
    assert bird.state.loaded
    assert not bird.state.empty
    assert store.find("bird", "1") is bird


def test_has_one_relationship(store: Store, seed: typing.Callable) -> None:
    seed("widget", "w1", name="Gear")
    seed("person", "p1", favorite={"type": "widget", "id": "w1"})

    person = store.find("person", "p1")
    favorite = person.get("favorite")

    assert favorite is store.find("widget", "w1")
    person.set("favorite", None)
    assert person.get_change_set()["has_one"] == {"favorite": {"old": favorite, "new": None}}
    person.rollback()
    assert person.get("favorite") is favorite


def test_get_collection_returns_the_tracker(store: Store) -> None:
    person = store.create("person")

    assert person.get_collection("pets").type == "animal"
    with pytest.raises(KeyError):
        person.get_collection("name")


def test_apply_with_invalid_relationship_changes_nothing(store: Store) -> None:
    person = store.create("person")
    bird = store.create("bird", "b1")

    with pytest.raises(InvalidRelationshipType):
        person.apply({"name": "Pat", "pets": [bird]})

    assert person.get("name") is None
    assert person.get("pets") == []


def test_apply_relationships(store: Store) -> None:
    person = store.create("person")
    cat = store.create("animal-cat", "a")
    widget = store.create("widget", "w1")

    person.apply({"pets": [{"type": "animal-cat", "id": "a"}], "favorite": widget})

    assert person.get("pets") == [cat]
    assert person.get("favorite") is widget

    person.apply({"favorite": None})
    assert person.get("favorite") is None


def test_deleted_model_can_not_be_modified(store: Store, seed: typing.Callable) -> None:
    seed("bird", "1", name="Tweety")
    bird = store.delete("bird", "1")

    bird.delete()
    bird.save()

    with pytest.raises(InvalidStateTransition):
        bird.apply({"name": "Polly"})
    with pytest.raises(InvalidStateTransition):
        bird.clear("name")


def test_embed_one_is_loaded_from_nested_document(widget: Model) -> None:
    address = widget.get("address")

    assert isinstance(address, Embed)
    assert address.name == "address"
    assert address.get("street") == "Main"
    assert address.snapshot() == {"street": "Main", "city": None}


def test_modified_embed_marks_owner_dirty(widget: Model) -> None:
    address = widget.get("address")

    address.set("city", "Oslo")

    assert widget.is_dirty()
    assert widget.get_change_set()["embed_one"] == {"address": {"old": address, "new": address}}

    widget.rollback()
    assert address.get("city") is None
    assert not widget.is_dirty()


def test_replace_embed_one(widget: Model) -> None:
    original = widget.get("address")
    replacement = widget.create_embed_for("address")
    replacement.set("street", "Elm")

    widget.set("address", replacement)

    assert widget.get("address") is replacement
    assert widget.get_change_set()["embed_one"] == {"address": {"old": original, "new": replacement}}


def test_embed_of_another_type_is_rejected(widget: Model, store: Store) -> None:
    tag_meta = store.get_metadata_for_type("widget").get_embed("tags").embed_meta
    tag = store.load_embed(tag_meta, {"label": "x"})

    with pytest.raises(InvalidResourceType):
        widget.set("address", tag)
    with pytest.raises(InvalidResourceType):
        widget.push_embed("tags", widget.create_embed_for("address"))


def test_push_and_remove_embeds(widget: Model) -> None:
    tags = widget.get("tags")
    assert isinstance(tags, EmbedCollection)
    first = tags.all_without_load()[0]

    second = widget.create_embed_for("tags")
    second.set("label", "b")
    widget.push_embed("tags", second)

    assert [tag.get("label") for tag in widget.get("tags")] == ["a", "b"]
    assert widget.get_change_set()["embed_many"] == {"tags": {"old": [first], "new": [first, second]}}

    widget.remove_embed("tags", first)
    assert [tag.get("label") for tag in widget.get("tags")] == ["b"]

    widget.rollback()
    assert [tag.get("label") for tag in widget.get("tags")] == ["a"]
    assert not widget.is_dirty()


def test_modified_member_of_embed_collection_marks_owner_dirty(widget: Model) -> None:
    widget.get("tags").all_without_load()[0].set("label", "changed")

    assert widget.is_dirty()
    assert "tags" in widget.get_change_set()["embed_many"]


def test_apply_embeds(widget: Model) -> None:
    widget.apply({"tags": [{"label": "a"}]})
    assert not widget.is_dirty()

    widget.apply({"address": {"city": "Oslo"}, "tags": [{"label": "z"}]})

    assert widget.get("address").snapshot() == {"street": "Main", "city": "Oslo"}
    assert [tag.get("label") for tag in widget.get("tags")] == ["z"]
    assert widget.is_dirty()

    widget.apply({"address": None})
    assert widget.get("address") is None


def test_apply_on_new_model_keeps_values_over_defaults(store: Store) -> None:
    widget = store.create("widget")
    widget.set("count", 5)

    widget.apply({"name": "Gear"})

    assert widget.get("count") == 5
    assert widget.get("color") == "blue"
    assert widget.get("name") == "Gear"


@pytest.mark.parametrize(
    "properties",
    [
        {"name": "Bolt", "count": "abc"},
        {"name": "Bolt", "createdDate": "yesterday"},
        {"name": "Bolt", "address": {"street": "Side"}, "tags": [{"label": "b"}], "count": object()},
        {"address": {"city": "Oslo"}, "tags": [{"label": "b"}], "name": "Bolt", "createdDate": "soon"},
    ],
)
def test_apply_with_unconvertible_value_changes_nothing(widget: Model, properties: typing.Dict) -> None:
    assert not widget.is_dirty()

    with pytest.raises(TypeConversionError):
        widget.apply(properties)

    assert widget.get("name") == "Gear"
    assert widget.get("count") == 2
    assert widget.get("address").snapshot() == {"street": "Main", "city": None}
    assert [tag.get("label") for tag in widget.get("tags")] == ["a"]
    assert not widget.is_dirty()
    assert not widget.state.dirty


def test_apply_with_malformed_embed_collection_changes_nothing(widget: Model) -> None:
    with pytest.raises(StoreError):
        widget.apply({"name": "Bolt", "address": {"city": "Oslo"}, "tags": "b"})

    assert widget.get("name") == "Gear"
    assert widget.get("address").snapshot() == {"street": "Main", "city": None}
    assert not widget.is_dirty()


def test_apply_with_malformed_relationship_keeps_the_others(store: Store) -> None:
    person = store.create("person", "p1")
    widget = store.create("widget", "w1")
    person.save()

    with pytest.raises(StoreError):
        person.apply({"favorite": widget, "name": "Pat", "pets": "cat"})

    assert person.get("favorite") is None
    assert person.get("name") is None
    assert not person.is_dirty()
