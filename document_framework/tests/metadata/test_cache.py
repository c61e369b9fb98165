import os
import pathlib
import typing

import pytest

from document_framework.events import Events
from document_framework.metadata import CacheWarmer, DictDriver, FileCache, MetadataRegistry


TYPES = {
    "animal": {
        "entity": {"polymorphic": True, "persistence": {"key": "main"}},
        "attributes": {"name": {"type": "string"}},
    },
    "animal-cat": {"entity": {"extends": "animal"}, "attributes": {"lives": {"type": "integer"}}},
}


class CacheLog:
    def __init__(self) -> None:
        self.loaded: typing.List[str] = []
        self.cached: typing.List[str] = []

    def on_metadata_load(self, arguments: typing.Any) -> None:
        self.loaded.append(arguments.metadata.type)

    def on_metadata_cache_load(self, arguments: typing.Any) -> None:
        self.cached.append(arguments.metadata.type)


@pytest.fixture()
def cache(tmp_path: pathlib.Path) -> FileCache:
    return FileCache(str(tmp_path))


def make_registry(cache: FileCache) -> typing.Tuple[MetadataRegistry, CacheLog]:
    registry = MetadataRegistry(DictDriver(TYPES), cache=cache)
    log = CacheLog()
    registry.dispatcher.add_listener([Events.on_metadata_load, Events.on_metadata_cache_load], log)
    return registry, log


def cache_files(cache: FileCache) -> typing.List[str]:
    return sorted(os.listdir(cache.directory))


def test_resolved_levels_are_written_to_the_cache(cache: FileCache) -> None:
    registry, log = make_registry(cache)

    registry.resolve("animal-cat")

    assert registry.has_cache()
    assert log.loaded == ["animal", "animal-cat"]
    assert cache_files(cache) == ["document_framework.animal-cat.metadata", "document_framework.animal.metadata"]


def test_cached_metadata_is_reused(cache: FileCache) -> None:
    make_registry(cache)[0].resolve("animal-cat")
    registry, log = make_registry(cache)

    metadata = registry.resolve("animal-cat")

    assert log.loaded == []
    assert log.cached == ["animal", "animal-cat"]
    assert set(metadata.attributes) == {"name", "lives"}
    assert metadata.is_frozen


def test_disabled_cache_is_bypassed(cache: FileCache) -> None:
    make_registry(cache)[0].resolve("animal")
    registry, log = make_registry(cache)

    registry.enable_cache(False)
    registry.resolve("animal")

    assert not registry.has_cache()
    assert log.loaded == ["animal"]
    assert log.cached == []


def test_cache_evict(cache: FileCache) -> None:
    make_registry(cache)[0].resolve("animal")

    cache.evict("animal")
    cache.evict("animal")

    assert cache.load("animal") is None


def test_cache_warmer(cache: FileCache) -> None:
    registry, log = make_registry(cache)
    warmer = CacheWarmer(registry)

    assert warmer.warm() == ["animal", "animal-cat"]
    assert len(cache_files(cache)) == 2
    assert log.loaded == ["animal", "animal-cat"]

    assert warmer.clear("animal-cat") == ["animal-cat"]
    assert cache_files(cache) == ["document_framework.animal.metadata"]

    assert warmer.warm(["animal-cat"]) == ["animal-cat"]
    assert len(cache_files(cache)) == 2
