import typing

from document_framework.config import Configuration
from document_framework.data_types import TypeFactory
from document_framework.exceptions import SchemaError
from document_framework.metadata.entity import EntityMetadata
from document_framework.metadata.fields import AttributeMetadata, EmbeddedPropMetadata, RelationshipMetadata
from document_framework.metadata.visitor import Visitor


class FieldValidatingVisitor(Visitor):
    """Checks field key formats and attribute data types, descending into embedded documents."""

    def __init__(self, owner: str, config: Configuration, type_factory: TypeFactory) -> None:
        self.owner = owner
        self.config = config
        self.type_factory = type_factory

    def visit_attribute(self, attribute: AttributeMetadata) -> None:
        self._check_key(attribute.key)
        if not self.type_factory.has_type(attribute.data_type):
            raise SchemaError(
                f'The data type "{attribute.data_type}" for attribute "{self.owner}::{attribute.key}" is invalid'
            )

    def visit_relationship(self, relationship: RelationshipMetadata) -> None:
        self._check_key(relationship.key)

    def visit_embed(self, embed: EmbeddedPropMetadata) -> None:
        self._check_key(embed.key)
        if embed.embed_meta is None:
            raise SchemaError(f'The embed "{self.owner}::{embed.key}" has no embed metadata')

    def _check_key(self, key: str) -> None:
        if not self.config.is_field_key_valid(key):
            raise SchemaError(
                f'The field key "{self.owner}::{key}" is invalid based on the configured name format '
                f'"{self.config.field_key_format}"'
            )


class MetadataValidator:
    """Structural validation of raw (per hierarchy level) entity metadata."""

    def __init__(self, config: Configuration, type_factory: TypeFactory) -> None:
        self.config = config
        self.type_factory = type_factory

    def validate(self, requested_type: str, metadata: EntityMetadata, registry: "MetadataRegistry") -> None:
        if metadata.type != requested_type:
            raise SchemaError(
                f'Unable to validate metadata. Expected type "{requested_type}" but received "{metadata.type}"'
            )
        if not self.config.is_entity_type_valid(metadata.type):
            raise SchemaError(
                f'The entity type "{metadata.type}" is invalid based on the configured name format '
                f'"{self.config.entity_format}"'
            )

        self._validate_polymorphism(metadata, registry)
        if metadata.is_child_entity():
            self._validate_child(metadata, registry)
        elif not metadata.persistence.key or not metadata.persistence.location:
            raise SchemaError(f'The "{metadata.type}" entity must declare a persistence key and location')

        FieldValidatingVisitor(metadata.type, self.config, self.type_factory).traverse(metadata)
        for relationship in metadata.relationships.values():
            self._validate_relationship(metadata, relationship, registry)

    def _validate_polymorphism(self, metadata: EntityMetadata, registry: "MetadataRegistry") -> None:
        if metadata.abstract and not metadata.polymorphic:
            raise SchemaError(f'The "{metadata.type}" entity is abstract and must also be polymorphic')
        if not metadata.polymorphic:
            return
        for owned_type in metadata.owned_types:
            if not registry.driver_has_type(owned_type):
                raise SchemaError(f'The owned entity type "{owned_type}" for type "{metadata.type}" does not exist')

    def _validate_child(self, metadata: EntityMetadata, registry: "MetadataRegistry") -> None:
        parent_type = metadata.extends
        if parent_type == metadata.type:
            raise SchemaError(f'An entity cannot extend itself ("{metadata.type}")')
        if metadata.polymorphic:
            raise SchemaError(f'The child entity "{metadata.type}" cannot also be polymorphic')
        if not self.config.child_type_policy(metadata.type, parent_type):
            raise SchemaError(
                f'The child entity type "{metadata.type}" does not satisfy the child type policy for '
                f'parent "{parent_type}"'
            )
        if not registry.driver_has_type(parent_type):
            raise SchemaError(f'The parent entity type "{parent_type}" of "{metadata.type}" does not exist')

        parent = registry.resolve(parent_type)
        if not parent.polymorphic:
            raise SchemaError(
                f'Parent classes must be polymorphic. Parent entity "{parent_type}" is not polymorphic'
            )
        for key in metadata.attributes:
            if parent.has_attribute(key):
                raise SchemaError(f'Parent entity type "{parent_type}" already contains attribute field "{key}"')
        for key in metadata.relationships:
            if parent.has_relationship(key):
                raise SchemaError(
                    f'Parent entity type "{parent_type}" already contains relationship field "{key}"'
                )

    def _validate_relationship(
        self, metadata: EntityMetadata, relationship: RelationshipMetadata, registry: "MetadataRegistry"
    ) -> None:
        owner_key = f"{metadata.type}::{relationship.key}"
        if not registry.driver_has_type(relationship.entity_type):
            raise SchemaError(
                f'The related model "{relationship.entity_type}" for relationship "{owner_key}" does not exist'
            )
        if not relationship.is_inverse:
            return
        if not relationship.inverse_field:
            raise SchemaError(f'The relationship "{owner_key}" is inverse and must declare an inverse field')

        # read the raw hierarchy so mutually related types do not resolve each other recursively
        target_field = registry.find_raw_relationship(relationship.entity_type, relationship.inverse_field)
        if target_field is None:
            raise SchemaError(
                f'The inverse relationship "{owner_key}" points at "{relationship.entity_type}::'
                f'{relationship.inverse_field}", which is not a relationship'
            )
        if target_field.is_inverse:
            raise SchemaError(
                f'The inverse relationship "{owner_key}" cannot point at another inverse relationship'
            )
        if not target_field.is_one():
            raise SchemaError(f'The inverse relationship "{owner_key}" must point at a "one" relationship')
        if target_field.entity_type not in registry.driver_type_hierarchy(metadata.type):
            raise SchemaError(
                f'The relationship "{relationship.entity_type}::{relationship.inverse_field}" does not relate '
                f'back to "{metadata.type}"'
            )
