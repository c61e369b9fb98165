from document_framework.config import Configuration
from document_framework.data_types import TypeFactory
from document_framework.events import EventDispatcher, Events, EventSubscriber
from document_framework.metadata import DictDriver, EntityMetadata, MetadataRegistry
from document_framework.models import Collection, Embed, Model
from document_framework.persister import Persister, PersisterManager, Record, RecordSet
from document_framework.store import Store


__all__ = [
    "Collection",
    "Configuration",
    "DictDriver",
    "Embed",
    "EntityMetadata",
    "EventDispatcher",
    "EventSubscriber",
    "Events",
    "MetadataRegistry",
    "Model",
    "Persister",
    "PersisterManager",
    "Record",
    "RecordSet",
    "Store",
    "TypeFactory",
]
