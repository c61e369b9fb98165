import abc
import logging
import typing

from document_framework import naming
from document_framework.exceptions import SchemaError, SchemaNotFound
from document_framework.metadata.entity import (
    EmbedMetadata,
    EntityMetadata,
    MixinMetadata,
    PersistenceMetadata,
    SearchMetadata,
)
from document_framework.metadata.fields import AttributeMetadata, EmbeddedPropMetadata, RelationshipMetadata


logger = logging.getLogger(__name__)

Mapping = typing.Dict[str, typing.Any]


class Driver(abc.ABC):
    """Source of raw, per-type schema definitions consumed by the metadata registry."""

    @abc.abstractmethod
    def load_metadata_for_type(self, type_key: str) -> typing.Optional[EntityMetadata]:
        pass

    @abc.abstractmethod
    def load_metadata_for_mixin(self, name: str) -> typing.Optional[MixinMetadata]:
        pass

    @abc.abstractmethod
    def load_metadata_for_embed(self, name: str) -> typing.Optional[EmbedMetadata]:
        pass

    @abc.abstractmethod
    def get_type_hierarchy(self, type_key: str) -> typing.List[str]:
        """Returns the chain of types ``type_key`` inherits from, root first and ``type_key`` last."""

    @abc.abstractmethod
    def get_owned_types(self, type_key: str) -> typing.List[str]:
        pass

    @abc.abstractmethod
    def get_all_type_names(self) -> typing.List[str]:
        pass


class DictDriver(Driver):
    """Reads schema definitions from plain mappings.

    Each entity mapping may hold the ``entity``, ``attributes``, ``relationships``, ``embeds`` and
    ``mixins`` sections, e.g.::

        {
            "entity": {"polymorphic": True, "abstract": True, "persistence": {"key": "memory"}},
            "attributes": {"make": {"type": "string"}},
            "relationships": {"owner": {"type": "one", "entity": "person"}},
            "embeds": {"engine": {"type": "one", "entity": "engine"}},
            "mixins": ["timestampable"],
        }
    """

    def __init__(
        self,
        types: typing.Mapping[str, Mapping],
        mixins: typing.Optional[typing.Mapping[str, Mapping]] = None,
        embeds: typing.Optional[typing.Mapping[str, Mapping]] = None,
    ) -> None:
        self._types = dict(types)
        self._mixins = dict(mixins or {})
        self._embeds = dict(embeds or {})

    def load_metadata_for_type(self, type_key: str) -> typing.Optional[EntityMetadata]:
        mapping = self._types.get(type_key)
        if mapping is None:
            return None
        self._ensure_sections(
            f'type "{type_key}"', mapping, ("entity", "attributes", "relationships", "embeds", "mixins")
        )
        entity = mapping.get("entity") or {}

        metadata = EntityMetadata(
            type_key,
            abstract=bool(entity.get("abstract", False)),
            polymorphic=bool(entity.get("polymorphic", False)),
            extends=entity.get("extends"),
            default_values=dict(entity.get("defaultValues") or {}),
            persistence=self._build_persistence(type_key, entity),
            search=self._build_search(entity),
            mixin_names=list(mapping.get("mixins") or []),
        )
        if metadata.polymorphic:
            metadata.owned_types = self.get_owned_types(type_key)

        self._add_attributes(metadata, mapping.get("attributes"))
        self._add_relationships(metadata, mapping.get("relationships"))
        self._add_embeds(metadata, mapping.get("embeds"))
        logger.debug("Loaded raw metadata for %s", type_key)
        return metadata

    def load_metadata_for_mixin(self, name: str) -> typing.Optional[MixinMetadata]:
        mapping = self._mixins.get(name)
        if mapping is None:
            return None
        self._ensure_sections(f'mixin "{name}"', mapping, ("attributes", "relationships", "embeds"))
        mixin = MixinMetadata(mixin_name=name)
        self._add_attributes(mixin, mapping.get("attributes"), from_mixin=True)
        self._add_relationships(mixin, mapping.get("relationships"), from_mixin=True)
        self._add_embeds(mixin, mapping.get("embeds"), from_mixin=True)
        return mixin

    def load_metadata_for_embed(self, name: str) -> typing.Optional[EmbedMetadata]:
        return self._load_embed(name, ())

    def get_type_hierarchy(self, type_key: str) -> typing.List[str]:
        hierarchy: typing.List[str] = []
        current: typing.Optional[str] = type_key
        while current is not None:
            if current in hierarchy:
                raise SchemaError(f'Circular inheritance detected for type "{type_key}": {hierarchy + [current]}')
            mapping = self._types.get(current)
            if mapping is None:
                raise SchemaNotFound(current)
            hierarchy.append(current)
            current = (mapping.get("entity") or {}).get("extends")
        return list(reversed(hierarchy))

    def get_owned_types(self, type_key: str) -> typing.List[str]:
        mapping = self._types.get(type_key)
        if mapping is None:
            raise SchemaNotFound(type_key)
        owned = [] if (mapping.get("entity") or {}).get("abstract") else [type_key]
        for search_type, search_mapping in self._types.items():
            if search_type != type_key and (search_mapping.get("entity") or {}).get("extends") == type_key:
                owned.append(search_type)
        return owned

    def get_all_type_names(self) -> typing.List[str]:
        return list(self._types)

    def _load_embed(self, name: str, loading: typing.Tuple[str, ...]) -> typing.Optional[EmbedMetadata]:
        mapping = self._embeds.get(name)
        if mapping is None:
            return None
        if name in loading:
            raise SchemaError(f'The embed "{name}" embeds itself: {list(loading) + [name]}')
        self._ensure_sections(f'embed "{name}"', mapping, ("attributes", "embeds", "mixins"))
        embed = EmbedMetadata(embed_name=name)
        self._add_attributes(embed, mapping.get("attributes"))
        self._add_embeds(embed, mapping.get("embeds"), loading=loading + (name,))
        for mixin_name in mapping.get("mixins") or []:
            mixin = self.load_metadata_for_mixin(mixin_name)
            if mixin is None:
                raise SchemaError(f'The mixin "{mixin_name}" used by embed "{name}" was not found')
            embed.add_mixin(mixin)
        return embed

    @staticmethod
    def _ensure_sections(owner: str, mapping: typing.Any, allowed: typing.Tuple[str, ...]) -> None:
        if not isinstance(mapping, dict):
            raise SchemaError(f"The schema of {owner} must be a mapping, got {type(mapping).__name__}")
        unknown = set(mapping) - set(allowed)
        if unknown:
            raise SchemaError(f"Unknown sections {sorted(unknown)} in the schema of {owner}")

    @staticmethod
    def _build_persistence(type_key: str, entity: Mapping) -> PersistenceMetadata:
        persistence = dict(entity.get("persistence") or {})
        # child types share the storage of their root
        if entity.get("extends") is None:
            persistence.setdefault("location", naming.default_location(type_key))
        return PersistenceMetadata(
            key=persistence.pop("key", None), location=persistence.pop("location", None), options=persistence
        )

    @staticmethod
    def _build_search(entity: Mapping) -> typing.Optional[SearchMetadata]:
        search = entity.get("search")
        if not search:
            return None
        search = dict(search)
        return SearchMetadata(key=search.pop("key", None), location=search.pop("location", None), options=search)

    @staticmethod
    def _field_flags(mapping: Mapping, from_mixin: bool) -> Mapping:
        return {
            "mixin": from_mixin,
            "description": mapping.get("description"),
            "save": bool(mapping.get("save", True)),
            "serialize": bool(mapping.get("serialize", True)),
            "search_property": bool(mapping.get("search", False)),
        }

    def _add_attributes(
        self, container: typing.Any, attributes: typing.Optional[Mapping], from_mixin: bool = False
    ) -> None:
        for key, mapping in (attributes or {}).items():
            mapping = mapping or {}
            if "type" not in mapping:
                raise SchemaError(f'The attribute "{key}" on "{container.name}" does not declare a data type')
            container.add_attribute(
                AttributeMetadata(
                    key,
                    mapping["type"],
                    default_value=mapping.get("defaultValue"),
                    calculated=mapping.get("calculated"),
                    autocomplete=bool(mapping.get("autocomplete", False)),
                    **self._field_flags(mapping, from_mixin),
                )
            )

    def _add_relationships(
        self, container: typing.Any, relationships: typing.Optional[Mapping], from_mixin: bool = False
    ) -> None:
        for key, mapping in (relationships or {}).items():
            mapping = mapping or {}
            if "type" not in mapping or "entity" not in mapping:
                raise SchemaError(
                    f'The relationship "{key}" on "{container.name}" must declare both its type and entity'
                )
            relationship = RelationshipMetadata(
                key,
                mapping["type"],
                mapping["entity"],
                is_inverse=bool(mapping.get("inverse", False)),
                inverse_field=mapping.get("field"),
                **self._field_flags(mapping, from_mixin),
            )
            target = (self._types.get(relationship.entity_type) or {}).get("entity") or {}
            if target.get("polymorphic"):
                relationship.polymorphic = True
                relationship.owned_types = self.get_owned_types(relationship.entity_type)
            container.add_relationship(relationship)

    def _add_embeds(
        self,
        container: typing.Any,
        embeds: typing.Optional[Mapping],
        from_mixin: bool = False,
        loading: typing.Tuple[str, ...] = (),
    ) -> None:
        for key, mapping in (embeds or {}).items():
            mapping = mapping or {}
            if "type" not in mapping or "entity" not in mapping:
                raise SchemaError(f'The embed "{key}" on "{container.name}" must declare both its type and entity')
            embed_meta = self._load_embed(mapping["entity"], loading)
            if embed_meta is None:
                raise SchemaError(f'The embed "{mapping["entity"]}" used by "{container.name}" was not found')
            container.add_embed(
                EmbeddedPropMetadata(
                    key, mapping["type"], embed_meta, **self._field_flags(mapping, from_mixin)
                )
            )
