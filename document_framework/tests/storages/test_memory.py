import typing

import pytest

from document_framework.exceptions import PersisterError
from document_framework.metadata import MetadataRegistry
from document_framework.persister import Record
from document_framework.storages.memory import MemoryPersister
from document_framework.store import Store


def test_records_are_copied(persister: MemoryPersister, registry: MetadataRegistry) -> None:
    record = Record("bird", "1", {"name": "Tweety"})
    persister.add_record("birds", record)
    record.properties["name"] = "Polly"

    retrieved = persister.retrieve(registry.resolve("bird"), "1")
    retrieved.properties["name"] = "Zazu"

    assert persister.records("birds")[0].properties == {"name": "Tweety"}


def test_retrieve_filters_by_owned_types(persister: MemoryPersister, registry: MetadataRegistry) -> None:
    persister.add_record("animals", Record("animal-cat", "a", {"name": "Tom"}))

    assert persister.retrieve(registry.resolve("animal"), "a").type == "animal-cat"
    assert persister.retrieve(registry.resolve("animal-cat"), "a").id == "a"
    assert persister.retrieve(registry.resolve("animal-dog"), "a") is None
    assert persister.retrieve(registry.resolve("animal"), "missing") is None


def test_all_and_query(persister: MemoryPersister, registry: MetadataRegistry, seed: typing.Callable) -> None:
    seed("animal-cat", "a", name="Tom")
    seed("animal-dog", "b", name="Rex")
    seed("animal-cat", "c", name="Felix")
    animal = registry.resolve("animal")

    assert [record.id for record in persister.all(animal)] == ["a", "b", "c"]
    assert [record.id for record in persister.all(registry.resolve("animal-cat"), ["c", "b"])] == ["c"]
    assert [record.id for record in persister.query(animal, {"name": ["Rex", "Felix"]}, sort={"name": 1})] == [
        "c",
        "b",
    ]


def test_inverse(persister: MemoryPersister, registry: MetadataRegistry, seed: typing.Callable) -> None:
    seed("vehicle-car", "c1", owner={"type": "person", "id": "p1"})
    seed("vehicle-car", "c2", owner={"type": "person", "id": "p2"})
    seed("vehicle-car", "c3")

    record_set = persister.inverse(registry.resolve("person"), registry.resolve("vehicle"), ["p1", "p2"], "owner")

    assert [record.id for record in record_set] == ["c1", "c2"]


def test_create_update_delete(store: Store, persister: MemoryPersister) -> None:
    bird = store.create("bird", "1")
    bird.set("name", "Tweety")

    persister.create(bird)
    with pytest.raises(PersisterError):
        persister.create(bird)
    assert persister.records("birds") == [Record("bird", "1", {"name": "Tweety"})]

    bird.state.set_new(False)
    bird.reload()
    bird.clear("name")
    persister.update(bird)
    assert persister.records("birds") == [Record("bird", "1", {})]

    persister.delete(bird)
    assert persister.records("birds") == []
    with pytest.raises(PersisterError):
        persister.update(bird)
    with pytest.raises(PersisterError):
        persister.delete(bird)


def test_generate_id(persister: MemoryPersister) -> None:
    first, second = persister.generate_id(), persister.generate_id()

    assert first != second
    assert len(first) == 32


def test_create_schemata_registers_location(persister: MemoryPersister, registry: MetadataRegistry) -> None:
    persister.create_schemata(registry.resolve("bird"))

    assert persister.records("birds") == []
