import typing

from document_framework.metadata.fields import (
    AttributeMetadata,
    EmbeddedPropMetadata,
    FieldMetadata,
    RelationshipMetadata,
)


class Visitor:
    def traverse(self, container: typing.Any) -> None:
        for field in container.properties.values():
            self.traverse_from(field)

    def traverse_from(self, field: FieldMetadata) -> None:
        field.accept(self)
        for child in field.children:
            self.traverse_from(child)
        field.farewell(self)

    def visit_attribute(self, attribute: AttributeMetadata) -> None:
        pass

    def leave_attribute(self, attribute: AttributeMetadata) -> None:
        pass

    def visit_relationship(self, relationship: RelationshipMetadata) -> None:
        pass

    def leave_relationship(self, relationship: RelationshipMetadata) -> None:
        pass

    def visit_embed(self, embed: EmbeddedPropMetadata) -> None:
        pass

    def leave_embed(self, embed: EmbeddedPropMetadata) -> None:
        pass
