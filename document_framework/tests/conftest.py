import copy
import typing

import pytest
from _pytest.config.argparsing import Parser

from document_framework.metadata import DictDriver, MetadataRegistry
from document_framework.persister import Record
from document_framework.storages.memory import MemoryPersister
from document_framework.store import Store


def pytest_addoption(parser: Parser) -> None:
    parser.addoption("--sqlalchemy-url", action="store", default="sqlite://")


def widget_label(model: typing.Any) -> str:
    return f"{model.get('name')} x{model.get('count')}"


TYPES = {
    "widget": {
        "entity": {"persistence": {"key": "main"}, "defaultValues": {"color": "blue"}},
        "attributes": {
            "name": {"type": "string", "search": True},
            "count": {"type": "integer", "defaultValue": 0},
            "color": {"type": "string"},
            "secret": {"type": "string", "save": False},
            "label": {"type": "string", "calculated": widget_label},
        },
        "embeds": {
            "address": {"type": "one", "entity": "address"},
            "tags": {"type": "many", "entity": "tag"},
        },
        "mixins": ["timestampable"],
    },
    "person": {
        "entity": {"persistence": {"key": "main"}},
        "attributes": {"name": {"type": "string"}},
        "relationships": {
            "vehicles": {"type": "many", "entity": "vehicle", "inverse": True, "field": "owner"},
            "pets": {"type": "many", "entity": "animal"},
            "favorite": {"type": "one", "entity": "widget"},
        },
    },
    "vehicle": {
        "entity": {"abstract": True, "polymorphic": True, "persistence": {"key": "main"}},
        "attributes": {"make": {"type": "string"}},
        "relationships": {"owner": {"type": "one", "entity": "person"}},
    },
    "vehicle-car": {
        "entity": {"extends": "vehicle"},
        "attributes": {"doors": {"type": "integer"}},
    },
    "animal": {
        "entity": {"polymorphic": True, "persistence": {"key": "main"}},
        "attributes": {"name": {"type": "string"}},
    },
    "animal-cat": {"entity": {"extends": "animal"}},
    "animal-dog": {"entity": {"extends": "animal"}, "attributes": {"breed": {"type": "string"}}},
    "bird": {
        "entity": {"persistence": {"key": "main"}},
        "attributes": {"name": {"type": "string"}},
    },
}

MIXINS = {
    "timestampable": {"attributes": {"createdDate": {"type": "date"}}},
}

EMBEDS = {
    "address": {"attributes": {"street": {"type": "string"}, "city": {"type": "string"}}},
    "tag": {"attributes": {"label": {"type": "string"}}},
}


@pytest.fixture()
def schema() -> typing.Dict[str, typing.Any]:
    return {"types": copy.deepcopy(TYPES), "mixins": copy.deepcopy(MIXINS), "embeds": copy.deepcopy(EMBEDS)}


@pytest.fixture()
def driver(schema: typing.Dict[str, typing.Any]) -> DictDriver:
    return DictDriver(schema["types"], schema["mixins"], schema["embeds"])


@pytest.fixture()
def registry(driver: DictDriver) -> MetadataRegistry:
    return MetadataRegistry(driver)


@pytest.fixture()
def persister() -> MemoryPersister:
    return MemoryPersister(key="main")


@pytest.fixture()
def store(registry: MetadataRegistry, persister: MemoryPersister) -> Store:
    return Store(registry, [persister])


@pytest.fixture()
def seed(registry: MetadataRegistry, persister: MemoryPersister) -> typing.Callable[..., Record]:
    def _seed(type_key: str, identifier: str, **properties: typing.Any) -> Record:
        record = Record(type_key, identifier, properties)
        persister.add_record(registry.resolve(type_key).persistence.location, record)
        return record

    return _seed
