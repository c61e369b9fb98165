import typing

import pytest

from document_framework.exceptions import InvalidResourceType, PersisterError
from document_framework.metadata import MetadataRegistry
from document_framework.persister import PersisterManager, Record, RecordSet, apply_query, record_matches, types_for
from document_framework.storages.memory import MemoryPersister


@pytest.fixture()
def records() -> typing.List[Record]:
    return [
        Record("animal-cat", "a", {"name": "Tom", "age": 3, "owner": {"type": "person", "id": "p1"}}),
        Record("animal-dog", "b", {"name": "Rex", "age": 5, "tags": ["loud", "big"]}),
        Record("animal-cat", "c", {"name": "Felix", "age": 1, "owner": {"type": "person", "id": "p2"}}),
        Record("animal", "d", {"name": "Generic"}),
    ]


@pytest.mark.parametrize(
    "criteria, expected",
    [
        ({}, ["a", "b", "c", "d"]),
        ({"name": "Tom"}, ["a"]),
        ({"id": ["b", "d"]}, ["b", "d"]),
        ({"type": "animal-cat"}, ["a", "c"]),
        ({"owner": "p1"}, ["a"]),
        ({"owner": ["p1", "p2"]}, ["a", "c"]),
        ({"owner": {"type": "person", "id": "p2"}}, ["c"]),
        ({"tags": "big"}, ["b"]),
        ({"type": "animal-cat", "age": 1}, ["c"]),
        ({"age": None}, ["d"]),
    ],
)
def test_record_matches(records: typing.List[Record], criteria: dict, expected: typing.List[str]) -> None:
    assert [record.id for record in records if record_matches(record, criteria)] == expected


@pytest.mark.parametrize(
    "sort, offset, limit, expected",
    [
        (None, 0, 0, ["a", "b", "c", "d"]),
        ({"age": 1}, 0, 0, ["c", "a", "b", "d"]),
        ({"age": -1}, 0, 2, ["d", "b"]),
        ({"name": 1}, 1, 2, ["d", "b"]),
        ({"id": -1}, 3, 0, ["a"]),
    ],
)
def test_apply_query_sorts_and_pages(
    records: typing.List[Record], sort: dict, offset: int, limit: int, expected: typing.List[str]
) -> None:
    record_set = apply_query(records, None, sort, offset, limit)

    assert [record.id for record in record_set] == expected
    assert record_set.total_count == 4


def test_record_set() -> None:
    record_set = RecordSet([Record("bird", "1")], total_count=10)

    assert len(record_set) == 1
    assert record_set.total_count == 10
    assert record_set.single_result().id == "1"
    assert RecordSet().single_result() is None
    assert RecordSet([Record("bird", "1")]).total_count == 1


def test_persister_manager() -> None:
    persister = MemoryPersister(key="main")
    manager = PersisterManager([persister])

    assert manager.has_persister("main")
    assert manager.get_persister("main") is persister
    assert list(manager) == [persister]
    with pytest.raises(PersisterError):
        manager.get_persister("other")


def test_types_for(registry: MetadataRegistry) -> None:
    assert types_for(registry.resolve("bird")) == ["bird"]
    assert types_for(registry.resolve("vehicle")) == ["vehicle-car"]
    assert types_for(registry.resolve("animal-cat")) == ["animal-cat"]


def test_extract_type(registry: MetadataRegistry) -> None:
    persister = MemoryPersister()
    animal = registry.resolve("animal")

    assert persister.extract_type(registry.resolve("bird"), {}) == "bird"
    assert persister.extract_type(animal, {"_type": "animal-dog"}) == "animal-dog"
    with pytest.raises(PersisterError):
        persister.extract_type(animal, {})
    with pytest.raises(InvalidResourceType):
        persister.extract_type(animal, {"_type": "bird"})


def test_convert_id() -> None:
    assert MemoryPersister().convert_id(12) == "12"
