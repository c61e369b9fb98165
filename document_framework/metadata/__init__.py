from document_framework.metadata.cache import CacheWarmer, FileCache, MetadataCache
from document_framework.metadata.driver import DictDriver, Driver
from document_framework.metadata.entity import (
    EmbedMetadata,
    EntityMetadata,
    MixinMetadata,
    PersistenceMetadata,
    SearchMetadata,
)
from document_framework.metadata.fields import (
    AttributeMetadata,
    EmbeddedPropMetadata,
    FieldDescriptor,
    RelationshipMetadata,
)
from document_framework.metadata.registry import MetadataRegistry
from document_framework.metadata.visitor import Visitor


__all__ = [
    "AttributeMetadata",
    "CacheWarmer",
    "DictDriver",
    "Driver",
    "EmbedMetadata",
    "EmbeddedPropMetadata",
    "EntityMetadata",
    "FieldDescriptor",
    "FileCache",
    "MetadataCache",
    "MetadataRegistry",
    "MixinMetadata",
    "PersistenceMetadata",
    "RelationshipMetadata",
    "SearchMetadata",
    "Visitor",
]
