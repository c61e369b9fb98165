import typing

from document_framework.exceptions import InvalidStateTransition
from document_framework.metadata.entity import EmbedMetadata, EntityMetadata, FieldContainer
from document_framework.models.properties import Attributes, ChangeSet, EmbedsHasMany, EmbedsHasOne, HasMany, HasOne
from document_framework.models.state import State


Properties = typing.Dict[str, typing.Any]
RecordFetcher = typing.Callable[[str, str], "Record"]


class AbstractModel:
    """Field access and change tracking shared by models and embeds.

    Attribute values are converted to their data type on load and on set. Every mutation
    recomputes the dirty flag from the trackers, so dirtiness is never toggled by hand.
    """

    def __init__(
        self, metadata: FieldContainer, store: "Store", properties: typing.Optional[Properties] = None
    ) -> None:
        self.metadata = metadata
        self.store = store
        self.state = State()
        self._attributes: typing.Optional[Attributes] = None
        self._has_one_embeds: typing.Optional[EmbedsHasOne] = None
        self._has_many_embeds: typing.Optional[EmbedsHasMany] = None
        self.initialize(properties)

    @property
    def composite_key(self) -> str:
        raise NotImplementedError

    def initialize(self, properties: typing.Optional[Properties] = None) -> None:
        attributes: Properties = {}
        embed_one: Properties = {}
        embed_many: Properties = {}

        if properties is not None:
            attributes = self._apply_default_attribute_values(attributes)
            for key, value in properties.items():
                if self.is_attribute(key):
                    attributes[key] = self.convert_attribute_value(key, value)
                elif self.is_embed_has_one(key) and isinstance(value, dict):
                    embed_one[key] = self.store.load_embed(self.metadata.get_embed(key).embed_meta, value)

        for key, embed_prop in self.metadata.embeds.items():
            # embed collections always exist, even without data
            if embed_prop.is_many():
                embed_many[key] = self.store.create_embed_collection(embed_prop, (properties or {}).get(key))

        self._attributes = self._replace(self._attributes, Attributes, attributes)
        self._has_one_embeds = self._replace(self._has_one_embeds, EmbedsHasOne, embed_one)
        self._has_many_embeds = self._replace(self._has_many_embeds, EmbedsHasMany, embed_many)
        self._dirty_check()

    def get(self, key: str) -> typing.Any:
        if self.is_attribute(key):
            return self._get_attribute(key)
        if self.is_embed(key):
            return self._get_embed(key)
        return None

    def set(self, key: str, value: typing.Any) -> None:
        if self.is_attribute(key):
            self._set_attribute(key, value)
        elif self.is_embed(key):
            self._set_embed(key, value)

    def apply(self, properties: Properties) -> None:
        """Applies a flattened property map, e.g. normalized API input, through the regular setters."""
        self._ensure_mutable()
        if self.state.new:
            # defaults only fill attributes that are still unset
            defaults = self._apply_default_attribute_values({})
            properties = {**{key: value for key, value in defaults.items() if self.get(key) is None}, **properties}

        # every value is converted and validated before the first one is set
        prepared = self._prepare_values(properties)
        self._apply_prepared_values(prepared)
        self._dirty_check()

    def clear(self, key: str) -> None:
        self._ensure_mutable()
        if self.is_attribute(key):
            self._set_attribute(key, None)
        elif self.is_embed_has_one(key):
            self._set_embed_has_one(key, None)
        elif self.is_embed_has_many(key):
            self._touch()
            self._has_many_embeds.get(key).clear()
            self._dirty_check()

    def create_embed_for(self, key: str) -> "Embed":
        if not self.is_embed(key):
            raise KeyError(f'Unable to create an embed for "{key}" - the property is not an embed')
        embed = self.store.load_embed(self.metadata.get_embed(key).embed_meta, {})
        embed.state.set_new()
        return embed

    def push_embed(self, key: str, embed: "Embed") -> None:
        if self.is_embed_has_one(key):
            self._set_embed_has_one(key, embed)
            return
        if not self.is_embed_has_many(key):
            return
        self._ensure_mutable()
        self._touch()
        self._has_many_embeds.get(key).push(embed)
        self._dirty_check()

    def remove_embed(self, key: str, embed: "Embed") -> None:
        if not self.is_embed_has_many(key):
            return
        self._ensure_mutable()
        self._touch()
        self._has_many_embeds.get(key).remove(embed)
        self._dirty_check()

    def rollback(self) -> None:
        self._attributes.rollback()
        self._has_one_embeds.rollback()
        self._has_many_embeds.rollback()
        self._dirty_check()

    def is_dirty(self) -> bool:
        return (
            self._attributes.are_dirty() or self._has_one_embeds.are_dirty() or self._has_many_embeds.are_dirty()
        )

    def get_change_set(self) -> typing.Dict[str, ChangeSet]:
        return {
            "attributes": self._filter_not_saved(self._attributes.calculate_change_set()),
            "embed_one": self._filter_not_saved(self._has_one_embeds.calculate_change_set()),
            "embed_many": self._filter_not_saved(self._has_many_embeds.calculate_change_set()),
        }

    def uses_mixin(self, name: str) -> bool:
        return self.metadata.has_mixin(name)

    def is_attribute(self, key: str) -> bool:
        return self.metadata.has_attribute(key)

    def is_calculated_attribute(self, key: str) -> bool:
        return self.is_attribute(key) and self.metadata.get_attribute(key).is_calculated()

    def is_embed(self, key: str) -> bool:
        return self.metadata.has_embed(key)

    def is_embed_has_one(self, key: str) -> bool:
        return self.is_embed(key) and self.metadata.get_embed(key).is_one()

    def is_embed_has_many(self, key: str) -> bool:
        return self.is_embed(key) and self.metadata.get_embed(key).is_many()

    def convert_attribute_value(self, key: str, value: typing.Any) -> typing.Any:
        return self.store.convert_attribute_value(self.metadata.get_attribute(key).data_type, value)

    def _touch(self, force: bool = False) -> None:
        pass

    def _dirty_check(self) -> None:
        self.state.set_dirty(self.is_dirty())

    def _ensure_mutable(self) -> None:
        if self.state.deleted:
            raise InvalidStateTransition(f'The model "{self.composite_key}" is deleted and can no longer be modified')

    def _get_attribute(self, key: str) -> typing.Any:
        if self.is_calculated_attribute(key):
            calculated = self.metadata.get_attribute(key).calculated
            return self.convert_attribute_value(key, calculated(self))
        self._touch()
        return self._attributes.get(key)

    def _set_attribute(self, key: str, value: typing.Any) -> None:
        if self.is_calculated_attribute(key):
            return
        self._ensure_mutable()
        value = self.convert_attribute_value(key, value)
        self._touch()
        self._attributes.set(key, value)
        self._dirty_check()

    def _get_embed(self, key: str) -> typing.Any:
        self._touch()
        if self.is_embed_has_one(key):
            return self._has_one_embeds.get(key)
        return self._has_many_embeds.get(key)

    def _set_embed(self, key: str, value: typing.Optional["Embed"]) -> None:
        if self.is_embed_has_many(key):
            raise InvalidStateTransition(
                f'Unable to set the has-many embed "{key}" directly. Use push_embed(), remove_embed() or clear()'
            )
        self._set_embed_has_one(key, value)

    def _set_embed_has_one(self, key: str, embed: typing.Optional["Embed"]) -> None:
        self._ensure_mutable()
        if embed is not None:
            self.store.validate_embed_set(self.metadata.get_embed(key).embed_meta, embed.name)
        self._touch()
        self._has_one_embeds.set(key, embed)
        self._dirty_check()

    def _prepare_values(self, properties: Properties) -> Properties:
        prepared: Properties = {}
        for key, value in properties.items():
            if self.is_attribute(key):
                if not self.is_calculated_attribute(key):
                    prepared[key] = self.convert_attribute_value(key, value)
            elif self.is_embed_has_one(key):
                if isinstance(value, Embed):
                    self.store.validate_embed_set(self.metadata.get_embed(key).embed_meta, value.name)
                elif value:
                    # a detached embed raises conversion errors without touching the current one
                    self.create_embed_for(key).apply(value)
                prepared[key] = value
            elif self.is_embed_has_many(key):
                prepared[key] = self.store.create_embed_collection(self.metadata.get_embed(key), value)
        return prepared

    def _apply_prepared_values(self, prepared: Properties) -> None:
        for key, value in prepared.items():
            if self.is_attribute(key):
                self.set(key, value)
            elif self.is_embed_has_one(key):
                if not value:
                    self.clear(key)
                elif isinstance(value, Embed):
                    self.set(key, value)
                else:
                    embed = self.get(key) or self.create_embed_for(key)
                    embed.apply(value)
                    self.set(key, embed)
            elif self.is_embed_has_many(key):
                if value.snapshot() == self.get(key).snapshot():
                    continue
                self.clear(key)
                for embed in value.all_without_load():
                    self.push_embed(key, embed)

    def _apply_default_attribute_values(self, attributes: Properties) -> Properties:
        attributes = dict(attributes)
        for key, value in self._default_values().items():
            if key not in attributes and not self.is_calculated_attribute(key):
                attributes[key] = self.convert_attribute_value(key, value)
        return attributes

    def _default_values(self) -> Properties:
        return {
            key: attribute.default_value
            for key, attribute in self.metadata.attributes.items()
            if attribute.has_default_value()
        }

    def _filter_not_saved(self, change_set: ChangeSet) -> ChangeSet:
        properties = self.metadata.properties
        return {key: change for key, change in change_set.items() if properties[key].should_save()}

    @staticmethod
    def _replace(tracker: typing.Any, tracker_cls: typing.Type, original: Properties) -> typing.Any:
        if tracker is None:
            return tracker_cls(original)
        tracker.replace(original)
        return tracker


class Model(AbstractModel):
    """A schema-typed record identified by ``(type, id)``.

    Models are created by the store only. A model created as a relationship placeholder starts
    ``empty`` and loads its record through ``fetch`` the first time one of its fields is touched.
    """

    metadata: EntityMetadata

    def __init__(
        self,
        metadata: EntityMetadata,
        identifier: str,
        store: "Store",
        properties: typing.Optional[Properties] = None,
        fetch: typing.Optional[RecordFetcher] = None,
    ) -> None:
        self.id = identifier
        self.collection_auto_init = store.config.collection_auto_init
        self._fetch = fetch or store.retrieve_record
        self._has_one: typing.Optional[HasOne] = None
        self._has_many: typing.Optional[HasMany] = None
        super().__init__(metadata, store, properties)

    def __repr__(self) -> str:
        return f"<Model {self.composite_key}>"

    @property
    def type(self) -> str:
        return self.metadata.type

    @property
    def composite_key(self) -> str:
        return f"{self.type}.{self.id}"

    def initialize(self, properties: typing.Optional[Properties] = None) -> None:
        has_one: Properties = {}
        has_many: Properties = {}

        for key, value in (properties or {}).items():
            if self.is_has_one(key) and value:
                has_one[key] = self.store.load_proxy_model(value["type"], value["id"])

        for key, relationship in self.metadata.relationships.items():
            if relationship.is_one():
                continue
            if relationship.is_inverse:
                has_many[key] = self.store.create_inverse_collection(relationship, self)
            else:
                has_many[key] = self.store.create_collection(relationship, (properties or {}).get(key))

        self._has_one = self._replace(self._has_one, HasOne, has_one)
        self._has_many = self._replace(self._has_many, HasMany, has_many)
        super().initialize(properties)

    def get(self, key: str) -> typing.Any:
        if self.is_relationship(key):
            return self._get_relationship(key)
        return super().get(key)

    def get_collection(self, key: str) -> typing.Any:
        """Returns the tracker collection behind a has-many relationship or embed, without loading it."""
        if self.is_has_many(key):
            self._touch()
            return self._has_many.get(key)
        if self.is_embed_has_many(key):
            self._touch()
            return self._has_many_embeds.get(key)
        raise KeyError(f'"{key}" is not a has-many field of "{self.type}"')

    def set(self, key: str, value: typing.Any) -> None:
        if self.is_relationship(key):
            self._set_relationship(key, value)
            return
        super().set(key, value)

    def _prepare_values(self, properties: Properties) -> Properties:
        prepared: Properties = {}
        for key, value in properties.items():
            if self.is_has_one(key):
                model = self._resolve_reference(value)
                if model is not None:
                    self._validate_relationship_set(key, model.type)
                prepared[key] = model
            elif self.is_has_many(key) and not self.is_inverse(key):
                models = self.store.create_collection(self.metadata.get_relationship(key), value).all_without_load()
                for model in models:
                    self._validate_relationship_set(key, model.type)
                prepared[key] = models
        prepared.update(super()._prepare_values(properties))
        return prepared

    def _apply_prepared_values(self, prepared: Properties) -> None:
        for key, value in prepared.items():
            if self.is_has_one(key):
                self.set(key, value)
            elif self.is_has_many(key):
                self.clear(key)
                for model in value:
                    self.push(key, model)
        super()._apply_prepared_values(prepared)

    def clear(self, key: str) -> None:
        if self.is_has_one(key):
            self._set_has_one(key, None)
            return
        if self.is_inverse(key):
            raise InvalidStateTransition(f'Unable to modify the inverse relationship "{self.type}::{key}"')
        if self.is_has_many(key):
            self._ensure_mutable()
            self._touch()
            self._has_many.get(key).clear()
            self._dirty_check()
            return
        super().clear(key)

    def push(self, key: str, model: "Model") -> None:
        if self.is_has_one(key):
            self._set_has_one(key, model)
            return
        if not self.is_has_many(key):
            return
        if self.is_inverse(key):
            raise InvalidStateTransition(f'Unable to modify the inverse relationship "{self.type}::{key}"')
        self._ensure_mutable()
        self._touch()
        self._has_many.get(key).push(model)
        self._dirty_check()

    def remove(self, key: str, model: "Model") -> None:
        if not self.is_has_many(key):
            return
        if self.is_inverse(key):
            raise InvalidStateTransition(f'Unable to modify the inverse relationship "{self.type}::{key}"')
        self._ensure_mutable()
        self._touch()
        self._has_many.get(key).remove(model)
        self._dirty_check()

    def rollback(self) -> None:
        self._has_one.rollback()
        self._has_many.rollback()
        super().rollback()

    def reload(self) -> None:
        self._touch(force=True)

    def save(self) -> None:
        if self.state.deleted:
            return
        self.store.commit(self)

    def delete(self) -> None:
        """Marks the model for deletion; the record is removed on the next ``save()``."""
        if self.state.new:
            raise InvalidStateTransition(f'Unable to delete "{self.composite_key}": the model was never saved')
        if self.state.deleted:
            return
        self.state.set_deleting()

    def is_dirty(self) -> bool:
        if self.state.deleted:
            return False
        return (
            self.state.new
            or super().is_dirty()
            or self._has_one.are_dirty()
            or self._has_many.are_dirty()
        )

    def get_change_set(self) -> typing.Dict[str, ChangeSet]:
        change_set = super().get_change_set()
        change_set["has_one"] = self._filter_not_saved(self._has_one.calculate_change_set())
        change_set["has_many"] = self._filter_not_saved(self._has_many.calculate_change_set())
        return change_set

    def is_relationship(self, key: str) -> bool:
        return self.metadata.has_relationship(key)

    def is_has_one(self, key: str) -> bool:
        return self.is_relationship(key) and self.metadata.get_relationship(key).is_one()

    def is_has_many(self, key: str) -> bool:
        return self.is_relationship(key) and self.metadata.get_relationship(key).is_many()

    def is_inverse(self, key: str) -> bool:
        return self.is_relationship(key) and self.metadata.get_relationship(key).is_inverse

    def _touch(self, force: bool = False) -> None:
        if self.state.deleted:
            return
        if self.state.empty or force:
            record = self._fetch(self.type, self.id)
            self.initialize(record.properties)
            self.state.set_loaded()

    def _get_relationship(self, key: str) -> typing.Any:
        self._touch()
        if self.is_has_one(key):
            return self._has_one.get(key)
        collection = self._has_many.get(key)
        if collection.loaded or self.collection_auto_init:
            return list(collection)
        return collection.all_without_load()

    def _set_relationship(self, key: str, value: typing.Optional["Model"]) -> None:
        if self.is_has_many(key):
            raise InvalidStateTransition(
                f'Unable to set the has-many relationship "{key}" directly. Use push(), remove() or clear()'
            )
        self._set_has_one(key, value)

    def _set_has_one(self, key: str, model: typing.Optional["Model"]) -> None:
        if self.is_inverse(key):
            raise InvalidStateTransition(f'Unable to modify the inverse relationship "{self.type}::{key}"')
        self._ensure_mutable()
        if model is not None:
            self._validate_relationship_set(key, model.type)
        self._touch()
        self._has_one.set(key, model)
        self._dirty_check()

    def _default_values(self) -> Properties:
        # per-attribute defaults take precedence over the entity-wide ones
        defaults = {
            key: value
            for key, value in self.metadata.default_values.items()
            if self.is_attribute(key) and value is not None
        }
        defaults.update(super()._default_values())
        return defaults

    def _validate_relationship_set(self, key: str, type_key: str) -> None:
        related = self.store.get_metadata_for_relationship(self.metadata.get_relationship(key))
        self.store.validate_relationship_set(related, type_key)

    def _resolve_reference(self, value: typing.Any) -> typing.Optional["Model"]:
        if not value:
            return None
        if isinstance(value, Model):
            return value
        return self.store.load_proxy_model(value["type"], value["id"])


class Embed(AbstractModel):
    """An identity-less document nested in a model; always loaded."""

    metadata: EmbedMetadata

    def __init__(self, metadata: EmbedMetadata, store: "Store", properties: typing.Optional[Properties] = None) -> None:
        super().__init__(metadata, store, properties)
        self.state.set_loaded()

    def __repr__(self) -> str:
        return f"<Embed {self.name} {self.snapshot()}>"

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def composite_key(self) -> str:
        return f"{self.name}.{id(self)}"

    def snapshot(self) -> Properties:
        """Current values of the embed as plain data, used to compare embeds by value."""
        snapshot: Properties = {}
        for key in self.metadata.attributes:
            if not self.is_calculated_attribute(key):
                snapshot[key] = self.get(key)
        for key in self.metadata.embeds:
            value = self.get(key)
            if self.is_embed_has_many(key):
                snapshot[key] = value.snapshot()
            else:
                snapshot[key] = value.snapshot() if value is not None else None
        return snapshot
