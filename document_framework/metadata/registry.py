import logging
import threading
import typing

from document_framework.config import Configuration
from document_framework.data_types import TypeFactory
from document_framework.events import EventDispatcher, Events, MetadataArguments
from document_framework.exceptions import InvalidResourceType, SchemaError, SchemaNotFound
from document_framework.metadata.cache import MetadataCache
from document_framework.metadata.driver import Driver
from document_framework.metadata.entity import EntityMetadata
from document_framework.metadata.fields import RelationshipMetadata
from document_framework.metadata.validation import MetadataValidator


logger = logging.getLogger(__name__)


class MetadataRegistry:
    """Resolves entity types to their fully merged, validated and frozen metadata.

    Resolution walks the type hierarchy root first. Every level is loaded from the driver (or
    taken from memory / the external cache), has its mixins applied, is validated and then merged
    on top of its parent. Each level is kept under its own key, so a type is only ever merged once
    per registry. Resolved metadata is read-only and can be shared between stores and threads.
    """

    def __init__(
        self,
        driver: Driver,
        config: typing.Optional[Configuration] = None,
        type_factory: typing.Optional[TypeFactory] = None,
        dispatcher: typing.Optional[EventDispatcher] = None,
        cache: typing.Optional[MetadataCache] = None,
    ) -> None:
        self.driver = driver
        self.config = config or Configuration()
        self.type_factory = type_factory or TypeFactory()
        self.dispatcher = dispatcher or EventDispatcher()
        self.cache = cache
        self.validator = MetadataValidator(self.config, self.type_factory)
        self._cache_enabled = cache is not None
        self._resolved: typing.Dict[str, EntityMetadata] = {}
        self._lock = threading.RLock()

    def resolve(self, type_key: str) -> EntityMetadata:
        metadata = self._resolved.get(type_key)
        if metadata is not None:
            return metadata

        with self._lock:
            metadata = self._resolved.get(type_key)
            if metadata is not None:
                return metadata

            merged: typing.Optional[EntityMetadata] = None
            for level in self.driver.get_type_hierarchy(type_key):
                resolved = self._resolved.get(level) or self._load_from_cache(level)
                if resolved is None:
                    resolved = self._resolve_level(level, merged)
                self._resolved[level] = resolved
                merged = resolved
            return merged

    def exists(self, type_key: str) -> bool:
        return type_key in self._resolved or self.driver_has_type(type_key)

    def is_descendant_of(self, child_type: str, ancestor_type: str) -> bool:
        metadata = self.resolve(child_type)
        while metadata.extends is not None:
            if metadata.extends == ancestor_type:
                return True
            metadata = self.resolve(metadata.extends)
        return False

    def is_ancestor_of(self, ancestor_type: str, child_type: str) -> bool:
        return self.is_descendant_of(child_type, ancestor_type)

    def is_child_of(self, child_type: str, parent_type: str) -> bool:
        return self.resolve(child_type).extends == parent_type

    def validate_resource_types(self, requested_type: str, actual_type: str) -> None:
        """Fails when a record of ``actual_type`` cannot stand in for ``requested_type``."""
        metadata = self.resolve(requested_type)
        if metadata.polymorphic:
            if actual_type not in metadata.owned_types:
                raise InvalidResourceType(
                    f'The resource type "{actual_type}" is polymorphic. Resource "{requested_type}" is not '
                    f"one of the allowed types: {metadata.owned_types}"
                )
        elif actual_type != requested_type:
            raise InvalidResourceType(
                f'The resource type "{actual_type}" does not match the requested type "{requested_type}"'
            )

    def get_all_type_names(self) -> typing.List[str]:
        return self.driver.get_all_type_names()

    def get_all_metadata(self) -> typing.List[EntityMetadata]:
        return [self.resolve(type_key) for type_key in self.get_all_type_names()]

    def clear_memory(self, type_key: typing.Optional[str] = None) -> None:
        with self._lock:
            if type_key is None:
                self._resolved.clear()
            else:
                self._resolved.pop(type_key, None)

    def enable_cache(self, enabled: bool = True) -> None:
        self._cache_enabled = enabled

    def has_cache(self) -> bool:
        return self.cache is not None and self._cache_enabled

    def driver_has_type(self, type_key: str) -> bool:
        return type_key in self.driver.get_all_type_names()

    def driver_type_hierarchy(self, type_key: str) -> typing.List[str]:
        return self.driver.get_type_hierarchy(type_key)

    def find_raw_relationship(self, type_key: str, key: str) -> typing.Optional[RelationshipMetadata]:
        """Looks a relationship up through the unmerged hierarchy of ``type_key``, leaf first."""
        for level in reversed(self.driver.get_type_hierarchy(type_key)):
            raw = self.driver.load_metadata_for_type(level)
            if raw.has_relationship(key):
                return raw.get_relationship(key)
            for mixin_name in raw.mixin_names:
                mixin = self.driver.load_metadata_for_mixin(mixin_name)
                if mixin is not None and mixin.has_relationship(key):
                    return mixin.get_relationship(key)
        return None

    def _load_from_cache(self, type_key: str) -> typing.Optional[EntityMetadata]:
        if not self.has_cache():
            return None
        metadata = self.cache.load(type_key)
        if metadata is None:
            return None
        logger.debug("Loaded metadata for %s from cache", type_key)
        self.dispatcher.dispatch(Events.on_metadata_cache_load, MetadataArguments(metadata))
        return metadata

    def _resolve_level(self, type_key: str, parent: typing.Optional[EntityMetadata]) -> EntityMetadata:
        raw = self.driver.load_metadata_for_type(type_key)
        if raw is None:
            raise SchemaNotFound(type_key)
        self._apply_mixins(raw, parent)
        self.validator.validate(type_key, raw, self)

        if parent is None:
            metadata = raw
        else:
            metadata = parent.clone()
            metadata.merge(raw)

        self.dispatcher.dispatch(Events.on_metadata_load, MetadataArguments(metadata))
        metadata.freeze()
        if self.has_cache():
            self.cache.put(metadata)
        logger.info("Resolved metadata for %s", type_key)
        return metadata

    def _apply_mixins(self, raw: EntityMetadata, parent: typing.Optional[EntityMetadata]) -> None:
        for mixin_name in raw.mixin_names:
            if parent is not None and parent.has_mixin(mixin_name):
                continue
            mixin = self.driver.load_metadata_for_mixin(mixin_name)
            if mixin is None:
                raise SchemaError(f'The mixin "{mixin_name}" used by "{raw.type}" was not found')
            raw.add_mixin(mixin)
