import copy
import types
import typing

import attr

from document_framework.exceptions import SchemaError
from document_framework.metadata.fields import (
    AttributeMetadata,
    EmbeddedPropMetadata,
    FieldDescriptor,
    FieldMetadata,
    RelationshipMetadata,
)


ID_KEY = "id"
TYPE_KEY = "type"

ATTRIBUTE = "attribute"
RELATIONSHIP = "relationship"
EMBED = "embed"


@attr.s(auto_attribs=True)
class StorageLayerMetadata:
    """Opaque coordinates of a storage layer (persister or search client) for one entity type."""

    key: typing.Optional[str] = None
    location: typing.Optional[str] = None
    options: typing.Dict[str, typing.Any] = attr.Factory(dict)

    def merge(self, other: typing.Optional["StorageLayerMetadata"]) -> None:
        if other is None:
            return
        if other.key is not None:
            self.key = other.key
        if other.location is not None:
            self.location = other.location
        self.options.update(other.options)

    def clone(self) -> "StorageLayerMetadata":
        return attr.evolve(self, options=dict(self.options))


@attr.s(auto_attribs=True)
class PersistenceMetadata(StorageLayerMetadata):
    pass


@attr.s(auto_attribs=True)
class SearchMetadata(StorageLayerMetadata):
    pass


@attr.s(auto_attribs=True)
class FieldContainer:
    """Holds attributes, relationships and embeds keyed by field key, rejecting cross-kind key collisions."""

    supported_kinds: typing.ClassVar[typing.Tuple[str, ...]] = (ATTRIBUTE, RELATIONSHIP, EMBED)

    _attributes: typing.Dict[str, AttributeMetadata] = attr.ib(factory=dict, kw_only=True)
    _relationships: typing.Dict[str, RelationshipMetadata] = attr.ib(factory=dict, kw_only=True)
    _embeds: typing.Dict[str, EmbeddedPropMetadata] = attr.ib(factory=dict, kw_only=True)
    _mixins: typing.Dict[str, "MixinMetadata"] = attr.ib(factory=dict, kw_only=True)
    _frozen: bool = attr.ib(default=False, init=False, eq=False, repr=False)

    @property
    def name(self) -> str:
        raise NotImplementedError

    @property
    def attributes(self) -> typing.Mapping[str, AttributeMetadata]:
        return types.MappingProxyType(self._attributes)

    @property
    def relationships(self) -> typing.Mapping[str, RelationshipMetadata]:
        return types.MappingProxyType(self._relationships)

    @property
    def embeds(self) -> typing.Mapping[str, EmbeddedPropMetadata]:
        return types.MappingProxyType(self._embeds)

    @property
    def mixins(self) -> typing.Mapping[str, "MixinMetadata"]:
        return types.MappingProxyType(self._mixins)

    @property
    def properties(self) -> typing.Dict[str, FieldDescriptor]:
        return {**self._attributes, **self._relationships, **self._embeds}

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def get_field(self, key: str) -> typing.Optional[FieldDescriptor]:
        return self.properties.get(key)

    def get_attribute(self, key: str) -> typing.Optional[AttributeMetadata]:
        return self._attributes.get(key)

    def get_relationship(self, key: str) -> typing.Optional[RelationshipMetadata]:
        return self._relationships.get(key)

    def get_embed(self, key: str) -> typing.Optional[EmbeddedPropMetadata]:
        return self._embeds.get(key)

    def has_attribute(self, key: str) -> bool:
        return key in self._attributes

    def has_relationship(self, key: str) -> bool:
        return key in self._relationships

    def has_embed(self, key: str) -> bool:
        return key in self._embeds

    def has_mixin(self, name: str) -> bool:
        return name in self._mixins

    def add_attribute(self, attribute: AttributeMetadata) -> None:
        self._add(ATTRIBUTE, self._attributes, attribute)

    def add_relationship(self, relationship: RelationshipMetadata) -> None:
        self._add(RELATIONSHIP, self._relationships, relationship)

    def add_embed(self, embed: EmbeddedPropMetadata) -> None:
        self._add(EMBED, self._embeds, embed)

    def add_mixin(self, mixin: "MixinMetadata") -> None:
        if mixin.name in self._mixins:
            return
        self._ensure_mutable()
        for kind, field in mixin.iter_fields():
            if kind not in self.supported_kinds:
                continue
            if self._kind_of(field.key) == kind:
                raise SchemaError(
                    f'Unable to apply mixin "{mixin.name}" to "{self.name}": '
                    f'the {kind} "{field.key}" already exists'
                )
            self._add(kind, self._storage_for(kind), field)
        self._mixins[mixin.name] = mixin

    def iter_fields(self) -> typing.Iterator[typing.Tuple[str, FieldDescriptor]]:
        for kind in self.supported_kinds:
            for field in self._storage_for(kind).values():
                yield kind, field

    def get_search_properties(self) -> typing.Dict[str, FieldDescriptor]:
        return {key: field for key, field in self.properties.items() if field.search_property}

    def property_supports_search(self, key: str) -> bool:
        return key in self.get_search_properties()

    def get_autocomplete_attributes(self) -> typing.Dict[str, AttributeMetadata]:
        return {key: attribute for key, attribute in self._attributes.items() if attribute.autocomplete}

    def _add(self, kind: str, storage: typing.Dict[str, FieldMetadata], field: FieldMetadata) -> None:
        self._ensure_mutable()
        if kind not in self.supported_kinds:
            raise SchemaError(f'"{self.name}" does not support {kind} fields')
        existing_kind = self._kind_of(field.key)
        if existing_kind is not None and existing_kind != kind:
            raise SchemaError(
                f'The {kind} key "{field.key}" is already in use as an {existing_kind} on "{self.name}"'
            )
        storage[field.key] = field

    def _kind_of(self, key: str) -> typing.Optional[str]:
        for kind in self.supported_kinds:
            if key in self._storage_for(kind):
                return kind
        return None

    def _storage_for(self, kind: str) -> typing.Dict[str, FieldMetadata]:
        return {ATTRIBUTE: self._attributes, RELATIONSHIP: self._relationships, EMBED: self._embeds}[kind]

    def _ensure_mutable(self) -> None:
        if self._frozen:
            raise SchemaError(f'The metadata for "{self.name}" is resolved and can no longer be modified')

    def _copy_fields_into(self, duplicate: "FieldContainer") -> None:
        duplicate._attributes = dict(self._attributes)
        duplicate._relationships = dict(self._relationships)
        duplicate._embeds = dict(self._embeds)
        duplicate._mixins = dict(self._mixins)
        duplicate._frozen = False


@attr.s(auto_attribs=True)
class MixinMetadata(FieldContainer):
    mixin_name: str = None

    @property
    def name(self) -> str:
        return self.mixin_name


@attr.s(auto_attribs=True)
class EmbedMetadata(FieldContainer):
    supported_kinds: typing.ClassVar[typing.Tuple[str, ...]] = (ATTRIBUTE, EMBED)

    embed_name: str = None

    @property
    def name(self) -> str:
        return self.embed_name


def _validate_type(instance: "EntityMetadata", attribute: attr.Attribute, value: str) -> None:
    if not isinstance(value, str) or not value:
        raise SchemaError(f"The entity type must be a non-empty string, got {value!r}")


@attr.s(auto_attribs=True)
class EntityMetadata(FieldContainer):
    """Schema of one entity type.

    Raw instances come from a metadata driver and describe a single level of the type hierarchy.
    The registry merges them root-first into the fully resolved metadata of the leaf type, which is
    frozen once cached.
    """

    type: str = attr.ib(default=None, validator=_validate_type)
    abstract: bool = False
    polymorphic: bool = False
    extends: typing.Optional[str] = None
    owned_types: typing.List[str] = attr.Factory(list)
    default_values: typing.Dict[str, typing.Any] = attr.Factory(dict)
    persistence: PersistenceMetadata = attr.Factory(PersistenceMetadata)
    search: typing.Optional[SearchMetadata] = None
    mixin_names: typing.List[str] = attr.Factory(list)

    @property
    def name(self) -> str:
        return self.type

    @property
    def parent_type(self) -> typing.Optional[str]:
        return self.extends

    def is_abstract(self) -> bool:
        return self.abstract

    def is_polymorphic(self) -> bool:
        return self.polymorphic

    def is_child_entity(self) -> bool:
        return self.extends is not None

    def is_search_enabled(self) -> bool:
        return self.search is not None and self.search.key is not None

    def clone(self) -> "EntityMetadata":
        duplicate = copy.copy(self)
        self._copy_fields_into(duplicate)
        duplicate.owned_types = list(self.owned_types)
        duplicate.default_values = dict(self.default_values)
        duplicate.persistence = self.persistence.clone()
        duplicate.search = self.search.clone() if self.search is not None else None
        duplicate.mixin_names = list(self.mixin_names)
        return duplicate

    def merge(self, other: "EntityMetadata") -> None:
        """Applies a more derived level of the hierarchy on top of this one; fields are only ever added."""
        if not isinstance(other, EntityMetadata):
            raise SchemaError("Unable to merge metadata. The provided metadata instance is not compatible.")
        self._ensure_mutable()

        self.type = other.type
        self.polymorphic = other.polymorphic
        self.abstract = other.abstract
        self.extends = other.extends
        self.owned_types = list(other.owned_types)
        self.default_values.update(other.default_values)

        self.persistence.merge(other.persistence)
        if self.search is None:
            self.search = other.search.clone() if other.search is not None else None
        else:
            self.search.merge(other.search)

        for kind, field in other.iter_fields():
            self._add(kind, self._storage_for(kind), field)
        for mixin_name, mixin in other.mixins.items():
            self._mixins.setdefault(mixin_name, mixin)
        self.mixin_names = list(dict.fromkeys(self.mixin_names + other.mixin_names))
