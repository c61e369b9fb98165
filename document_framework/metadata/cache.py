import abc
import logging
import os
import pickle
import typing

from document_framework.metadata.entity import EntityMetadata


logger = logging.getLogger(__name__)


class MetadataCache(abc.ABC):
    """External store for resolved entity metadata, e.g. to share it between processes."""

    @abc.abstractmethod
    def load(self, type_key: str) -> typing.Optional[EntityMetadata]:
        pass

    @abc.abstractmethod
    def put(self, metadata: EntityMetadata) -> None:
        pass

    @abc.abstractmethod
    def evict(self, type_key: str) -> None:
        pass


class FileCache(MetadataCache):
    def __init__(self, directory: str, prefix: str = "document_framework") -> None:
        self.directory = directory
        self.prefix = prefix

    def load(self, type_key: str) -> typing.Optional[EntityMetadata]:
        path = self._path_for(type_key)
        if not os.path.exists(path):
            return None
        with open(path, "rb") as cache_file:
            return pickle.load(cache_file)

    def put(self, metadata: EntityMetadata) -> None:
        os.makedirs(self.directory, exist_ok=True)
        with open(self._path_for(metadata.type), "wb") as cache_file:
            pickle.dump(metadata, cache_file)
        logger.debug("Cached metadata for %s in %s", metadata.type, self.directory)

    def evict(self, type_key: str) -> None:
        path = self._path_for(type_key)
        if os.path.exists(path):
            os.remove(path)

    def _path_for(self, type_key: str) -> str:
        return os.path.join(self.directory, f"{self.prefix}.{type_key}.metadata")


class CacheWarmer:
    def __init__(self, registry: "MetadataRegistry") -> None:
        self.registry = registry

    def warm(self, type_key: typing.Union[None, str, typing.Iterable[str]] = None) -> typing.List[str]:
        """Resolves and caches metadata for the given types, or for every known type."""
        warmed = []
        for current in self._types_for(type_key):
            self.registry.clear_memory(current)
            if self.registry.has_cache():
                self.registry.cache.evict(current)
            self.registry.resolve(current)
            warmed.append(current)
        return warmed

    def clear(self, type_key: typing.Union[None, str, typing.Iterable[str]] = None) -> typing.List[str]:
        cleared = []
        for current in self._types_for(type_key):
            self.registry.clear_memory(current)
            if self.registry.has_cache():
                self.registry.cache.evict(current)
            cleared.append(current)
        return cleared

    def _types_for(self, type_key: typing.Union[None, str, typing.Iterable[str]]) -> typing.List[str]:
        if type_key is None:
            return self.registry.get_all_type_names()
        if isinstance(type_key, str):
            return [type_key]
        return list(type_key)
