import concurrent.futures
import logging
import typing

from document_framework.config import Configuration
from document_framework.events import EventDispatcher, Events, ModelLifecycleArguments, PreQueryArguments
from document_framework.exceptions import (
    AbstractTypeError,
    DuplicateIdentity,
    InvalidRelationshipType,
    InvalidResourceType,
    PersisterTimeout,
    RecordNotFound,
    StoreError,
)
from document_framework.metadata.entity import EmbedMetadata, EntityMetadata
from document_framework.metadata.fields import EmbeddedPropMetadata, RelationshipMetadata
from document_framework.metadata.registry import MetadataRegistry
from document_framework.models.collections import AbstractCollection, Collection, EmbedCollection, InverseCollection
from document_framework.models.model import Embed, Model
from document_framework.persister import Persister, PersisterManager, Record, RecordSet, Sort


logger = logging.getLogger(__name__)

T = typing.TypeVar("T")


class IdentityMap:
    """One model instance per ``(type, id)`` for the lifetime of a store."""

    def __init__(self) -> None:
        self._models: typing.Dict[typing.Tuple[str, str], Model] = {}

    def has(self, type_key: str, identifier: str) -> bool:
        return (type_key, identifier) in self._models

    def get(self, type_key: str, identifier: str) -> typing.Optional[Model]:
        return self._models.get((type_key, identifier))

    def push(self, model: Model) -> None:
        self._models[(model.type, model.id)] = model

    def get_all(self, type_key: typing.Optional[str] = None) -> typing.List[Model]:
        return [model for (model_type, _), model in self._models.items() if type_key in (None, model_type)]

    def __len__(self) -> int:
        return len(self._models)

    def __contains__(self, model: Model) -> bool:
        return self._models.get((model.type, model.id)) is model


class Store:
    """Unit of work over a metadata registry and a set of persisters.

    A store owns an identity map and must not be shared between concurrent units of work; create one
    per request. The registry it uses may be shared.
    """

    def __init__(
        self,
        registry: MetadataRegistry,
        persisters: typing.Union[PersisterManager, typing.Iterable[Persister]],
        config: typing.Optional[Configuration] = None,
        dispatcher: typing.Optional[EventDispatcher] = None,
    ) -> None:
        self.registry = registry
        self.persisters = persisters if isinstance(persisters, PersisterManager) else PersisterManager(persisters)
        self.config = config or registry.config
        self.dispatcher = dispatcher or registry.dispatcher
        self.identity_map = IdentityMap()

    def model_types(self) -> typing.List[str]:
        return self.registry.get_all_type_names()

    def get_metadata_for_type(self, type_key: str) -> EntityMetadata:
        return self.registry.resolve(type_key)

    def get_metadata_for_relationship(self, relationship: RelationshipMetadata) -> EntityMetadata:
        return self.get_metadata_for_type(relationship.entity_type)

    def get_persister_for(self, type_key: str) -> Persister:
        return self.persisters.get_persister(self.get_metadata_for_type(type_key).persistence.key)

    def find(self, type_key: str, identifier: typing.Any) -> Model:
        identifier = self.convert_id(type_key, identifier)
        metadata = self.get_metadata_for_type(type_key)
        # models are mapped under their concrete type, which may be any owned type of a polymorphic one
        for candidate in [type_key, *metadata.owned_types]:
            cached = self.identity_map.get(candidate, identifier)
            if cached is not None:
                logger.debug("Identity map hit for %s.%s", candidate, identifier)
                return cached
        record = self.retrieve_record(type_key, identifier)
        return self._load_model(type_key, record)

    def find_all(
        self,
        type_key: str,
        identifiers: typing.Sequence[typing.Any] = (),
        fields: typing.Sequence[str] = (),
        sort: typing.Optional[Sort] = None,
        offset: int = 0,
        limit: int = 0,
    ) -> Collection:
        metadata = self.get_metadata_for_type(type_key)
        identifiers = [self.convert_id(type_key, identifier) for identifier in identifiers]
        record_set = self.retrieve_records(type_key, identifiers, fields, sort, offset, limit)
        models = self._load_models(type_key, record_set)
        return Collection(metadata, self, models, record_set.total_count)

    def find_by_query(
        self,
        type_key: str,
        criteria: typing.Mapping[str, typing.Any],
        fields: typing.Sequence[str] = (),
        sort: typing.Optional[Sort] = None,
        offset: int = 0,
        limit: int = 0,
    ) -> Collection:
        metadata = self.get_metadata_for_type(type_key)
        persister = self.get_persister_for(type_key)
        self.dispatcher.dispatch(Events.pre_query, PreQueryArguments(metadata, self, persister, dict(criteria)))

        record_set = self._call(persister.query, metadata, criteria, fields, sort, offset, limit)
        models = self._load_models(type_key, record_set)
        return Collection(metadata, self, models, record_set.total_count)

    def create(self, type_key: str, identifier: typing.Any = None) -> Model:
        metadata = self.get_metadata_for_type(type_key)
        if metadata.abstract:
            raise AbstractTypeError(
                f'Unable to create a "{type_key}" model: abstract types must be created through a child type'
            )
        if identifier is None or identifier == "":
            identifier = self._generate_identifier(type_key)
        identifier = self.convert_id(type_key, identifier)
        if self.identity_map.has(type_key, identifier):
            raise DuplicateIdentity(f'A model is already loaded for type "{type_key}" using identifier "{identifier}"')

        model = Model(metadata, identifier, self)
        model.state.set_new()
        # registered before the first save so that relationships built in memory resolve to it
        self.identity_map.push(model)
        model.apply({})
        logger.debug("Created new model %s", model.composite_key)
        return model

    def delete(self, type_key: str, identifier: typing.Any) -> Model:
        model = self.find(type_key, identifier)
        model.delete()
        model.save()
        return model

    def commit(self, model: Model) -> Model:
        state = model.state
        if state.deleted:
            return model
        self._dispatch_lifecycle_event(Events.pre_commit, model)
        if state.new:
            self._commit_create(model)
        elif state.deleting:
            # deletes run before updates so a deleting model is never written first
            self._commit_delete(model)
        elif model.is_dirty():
            self._commit_update(model)
        else:
            return model
        self._dispatch_lifecycle_event(Events.post_commit, model)
        return model

    def retrieve_record(self, type_key: str, identifier: str) -> Record:
        persister = self.get_persister_for(type_key)
        record = self._call(persister.retrieve, self.get_metadata_for_type(type_key), identifier)
        if record is None:
            raise RecordNotFound(type_key, identifier)
        return record

    def retrieve_records(
        self,
        type_key: str,
        identifiers: typing.Sequence[str],
        fields: typing.Sequence[str] = (),
        sort: typing.Optional[Sort] = None,
        offset: int = 0,
        limit: int = 0,
    ) -> RecordSet:
        persister = self.get_persister_for(type_key)
        return self._call(
            persister.all, self.get_metadata_for_type(type_key), identifiers, fields, sort, offset, limit
        )

    def retrieve_inverse_records(
        self, owner_type: str, related_type: str, identifiers: typing.Sequence[str], inverse_field: str
    ) -> RecordSet:
        persister = self.get_persister_for(related_type)
        return self._call(
            persister.inverse,
            self.get_metadata_for_type(owner_type),
            self.get_metadata_for_type(related_type),
            identifiers,
            inverse_field,
        )

    def load_proxy_model(self, type_key: str, identifier: typing.Any) -> Model:
        identifier = self.convert_id(type_key, identifier)
        cached = self.identity_map.get(type_key, identifier)
        if cached is not None:
            return cached
        model = Model(self.get_metadata_for_type(type_key), identifier, self)
        self.identity_map.push(model)
        logger.debug("Created placeholder for %s", model.composite_key)
        return model

    def load_embed(self, embed_meta: EmbedMetadata, properties: typing.Mapping[str, typing.Any]) -> Embed:
        return Embed(embed_meta, self, dict(properties))

    def create_collection(
        self, relationship: RelationshipMetadata, references: typing.Optional[typing.Sequence[typing.Any]] = None
    ) -> Collection:
        metadata = self.get_metadata_for_relationship(relationship)
        references = self._ensure_sequence(references, f'relationship "{relationship.key}"')
        models = [
            reference if isinstance(reference, Model) else self.load_proxy_model(reference["type"], reference["id"])
            for reference in references
        ]
        return Collection(metadata, self, models)

    def create_inverse_collection(self, relationship: RelationshipMetadata, owner: Model) -> InverseCollection:
        return InverseCollection(
            self.get_metadata_for_relationship(relationship), self, owner, relationship.inverse_field
        )

    def create_embed_collection(
        self, embed_prop: EmbeddedPropMetadata, documents: typing.Optional[typing.Sequence[typing.Any]] = None
    ) -> EmbedCollection:
        documents = self._ensure_sequence(documents, f'embed "{embed_prop.key}"')
        embeds = [
            document if isinstance(document, Embed) else self.load_embed(embed_prop.embed_meta, document)
            for document in documents
        ]
        return EmbedCollection(embed_prop.embed_meta, self, embeds)

    def load_collection(self, collection: AbstractCollection) -> typing.List[Model]:
        """Fetches the unloaded members of a collection, reusing (and hydrating) identity-map instances."""
        identifiers = collection.identifiers()
        if not identifiers:
            return []
        if isinstance(collection, InverseCollection):
            record_set = self.retrieve_inverse_records(
                collection.owner.type, collection.type, identifiers, collection.query_field
            )
        else:
            record_set = self.retrieve_records(collection.type, identifiers)
        return self._load_models(collection.type, record_set)

    def validate_relationship_set(self, owner_metadata: EntityMetadata, type_key: str) -> None:
        if owner_metadata.polymorphic:
            can_set = type_key in owner_metadata.owned_types
        else:
            can_set = type_key == owner_metadata.type
        if not can_set:
            raise InvalidRelationshipType(
                f'The model type "{type_key}" cannot be added to "{owner_metadata.type}", as it is not supported'
            )

    def validate_embed_set(self, embed_meta: EmbedMetadata, name: str) -> None:
        if embed_meta.name != name:
            raise InvalidResourceType(
                f'The embed type "{name}" cannot be added to "{embed_meta.name}", as it is not supported'
            )

    def convert_attribute_value(self, data_type: str, value: typing.Any) -> typing.Any:
        return self.registry.type_factory.convert(data_type, value)

    def convert_id(self, type_key: str, identifier: typing.Any) -> typing.Any:
        """Normalizes an identifier the way the persister of ``type_key`` stores it."""
        return self.get_persister_for(type_key).convert_id(identifier)

    def _generate_identifier(self, type_key: str) -> str:
        persister = self.get_persister_for(type_key)
        return self.convert_id(type_key, persister.generate_id())

    def _load_model(self, type_key: str, record: Record) -> Model:
        self.registry.validate_resource_types(type_key, record.type)
        identifier = self.convert_id(record.type, record.id)
        cached = self.identity_map.get(record.type, identifier)
        if cached is not None:
            if cached.state.empty:
                cached.initialize(record.properties)
                cached.state.set_loaded()
                self._dispatch_lifecycle_event(Events.post_load, cached)
            return cached

        # the record type covers polymorphic models
        model = Model(self.get_metadata_for_type(record.type), identifier, self, record.properties)
        model.state.set_loaded()
        self.identity_map.push(model)
        self._dispatch_lifecycle_event(Events.post_load, model)
        return model

    def _load_models(self, type_key: str, record_set: RecordSet) -> typing.List[Model]:
        return [self._load_model(type_key, record) for record in record_set]

    def _commit_create(self, model: Model) -> None:
        self._dispatch_lifecycle_event(Events.pre_create, model)
        self._call(self.get_persister_for(model.type).create, model)
        model.state.set_new(False)
        logger.info("Created %s", model.composite_key)
        model.reload()
        self._dispatch_lifecycle_event(Events.post_create, model)

    def _commit_delete(self, model: Model) -> None:
        self._dispatch_lifecycle_event(Events.pre_delete, model)
        self._call(self.get_persister_for(model.type).delete, model)
        model.state.set_deleted()
        logger.info("Deleted %s", model.composite_key)
        self._dispatch_lifecycle_event(Events.post_delete, model)

    def _commit_update(self, model: Model) -> None:
        self._dispatch_lifecycle_event(Events.pre_update, model)
        self._call(self.get_persister_for(model.type).update, model)
        logger.info("Updated %s", model.composite_key)
        model.reload()
        self._dispatch_lifecycle_event(Events.post_update, model)

    def _dispatch_lifecycle_event(self, event_name: str, model: Model) -> None:
        self.dispatcher.dispatch(event_name, ModelLifecycleArguments(model))

    def _call(self, method: typing.Callable[..., T], *args: typing.Any) -> T:
        timeout = self.config.persister_timeout
        if timeout is None:
            return method(*args)
        executor = concurrent.futures.ThreadPoolExecutor(max_workers=1)
        try:
            future = executor.submit(method, *args)
            try:
                return future.result(timeout=timeout)
            except concurrent.futures.TimeoutError:
                future.cancel()
                raise PersisterTimeout(f"{getattr(method, '__qualname__', method)} did not finish within {timeout}s")
        finally:
            executor.shutdown(wait=False)

    @staticmethod
    def _ensure_sequence(values: typing.Optional[typing.Sequence[typing.Any]], owner: str) -> typing.List[typing.Any]:
        if not values:
            return []
        if isinstance(values, (dict, str)):
            raise StoreError(f"Improper has-many data detected for {owner} - a sequence is required")
        return list(values)
