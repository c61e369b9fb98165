import typing

import attr

from document_framework.exceptions import SchemaError


RESERVED_KEYS = ("type", "id")
ONE = "one"
MANY = "many"
CARDINALITIES = (ONE, MANY)


def _validate_key(instance: "FieldMetadata", attribute: attr.Attribute, key: str) -> None:
    if not isinstance(key, str) or not key:
        raise SchemaError(f"Field keys must be non-empty strings, got {key!r}")
    if key.lower() in RESERVED_KEYS:
        raise SchemaError(f'The field key "{key}" is reserved. Reserved keys are {list(RESERVED_KEYS)}')


def _validate_cardinality(instance: "FieldMetadata", attribute: attr.Attribute, value: str) -> None:
    if value not in CARDINALITIES:
        raise SchemaError(f'The {attribute.name} "{value}" is invalid. Valid types are {list(CARDINALITIES)}')


@attr.s(auto_attribs=True)
class FieldMetadata:
    key: str = attr.ib(validator=_validate_key)
    mixin: bool = attr.ib(default=False, kw_only=True)
    description: typing.Optional[str] = attr.ib(default=None, kw_only=True)
    save: bool = attr.ib(default=True, kw_only=True)
    serialize: bool = attr.ib(default=True, kw_only=True)
    search_property: bool = attr.ib(default=False, kw_only=True)

    @property
    def children(self) -> typing.List["FieldMetadata"]:
        return []

    def should_save(self) -> bool:
        return self.save

    def accept(self, visitor: "Visitor") -> None:
        raise NotImplementedError

    def farewell(self, visitor: "Visitor") -> None:
        raise NotImplementedError


@attr.s(auto_attribs=True)
class AttributeMetadata(FieldMetadata):
    data_type: str = None
    default_value: typing.Any = attr.ib(default=None, kw_only=True)
    calculated: typing.Optional[typing.Callable[[typing.Any], typing.Any]] = attr.ib(default=None, kw_only=True)
    autocomplete: bool = attr.ib(default=False, kw_only=True)

    def __attrs_post_init__(self) -> None:
        if self.autocomplete:
            self.search_property = True

    def has_default_value(self) -> bool:
        return self.default_value is not None

    def is_calculated(self) -> bool:
        return self.calculated is not None

    def accept(self, visitor: "Visitor") -> None:
        visitor.visit_attribute(self)

    def farewell(self, visitor: "Visitor") -> None:
        visitor.leave_attribute(self)


@attr.s(auto_attribs=True)
class RelationshipMetadata(FieldMetadata):
    rel_type: str = attr.ib(default=ONE, validator=_validate_cardinality)
    entity_type: str = None
    is_inverse: bool = attr.ib(default=False, kw_only=True)
    inverse_field: typing.Optional[str] = attr.ib(default=None, kw_only=True)
    polymorphic: bool = attr.ib(default=False, kw_only=True)
    owned_types: typing.List[str] = attr.ib(factory=list, kw_only=True)

    def is_one(self) -> bool:
        return self.rel_type == ONE

    def is_many(self) -> bool:
        return self.rel_type == MANY

    def accept(self, visitor: "Visitor") -> None:
        visitor.visit_relationship(self)

    def farewell(self, visitor: "Visitor") -> None:
        visitor.leave_relationship(self)


@attr.s(auto_attribs=True)
class EmbeddedPropMetadata(FieldMetadata):
    embed_type: str = attr.ib(default=ONE, validator=_validate_cardinality)
    embed_meta: "EmbedMetadata" = None

    @property
    def children(self) -> typing.List[FieldMetadata]:
        # embed metadata may be missing while a driver is still assembling it
        if self.embed_meta is None:
            return []
        return list(self.embed_meta.properties.values())

    def is_one(self) -> bool:
        return self.embed_type == ONE

    def is_many(self) -> bool:
        return self.embed_type == MANY

    def accept(self, visitor: "Visitor") -> None:
        visitor.visit_embed(self)

    def farewell(self, visitor: "Visitor") -> None:
        visitor.leave_embed(self)


FieldDescriptor = typing.Union[AttributeMetadata, RelationshipMetadata, EmbeddedPropMetadata]
