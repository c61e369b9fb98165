import typing

from document_framework.metadata import DictDriver, MetadataRegistry, Visitor
from document_framework.metadata.fields import FieldMetadata


class Scribe(Visitor):
    def __init__(self) -> None:
        self.visits_log: typing.List[typing.Tuple[str, str]] = []

    def visit_attribute(self, field: FieldMetadata) -> None:
        self.visits_log.append(("visit", field.key))

    def leave_attribute(self, field: FieldMetadata) -> None:
        self.visits_log.append(("leave", field.key))

    visit_relationship = visit_embed = visit_attribute
    leave_relationship = leave_embed = leave_attribute


def test_visitor_descends_into_embeds() -> None:
    types = {
        "bird": {
            "entity": {"persistence": {"key": "main"}},
            "attributes": {"name": {"type": "string"}},
            "relationships": {"mate": {"type": "one", "entity": "bird"}},
            "embeds": {"nest": {"type": "one", "entity": "nest"}},
        }
    }
    embeds = {
        "nest": {
            "attributes": {"height": {"type": "float"}},
            "embeds": {"location": {"type": "one", "entity": "point"}},
        },
        "point": {"attributes": {"lat": {"type": "float"}}},
    }
    scribe = Scribe()

    scribe.traverse(MetadataRegistry(DictDriver(types, embeds=embeds)).resolve("bird"))

    assert scribe.visits_log == [
        ("visit", "name"),
        ("leave", "name"),
        ("visit", "mate"),
        ("leave", "mate"),
        ("visit", "nest"),
        ("visit", "height"),
        ("leave", "height"),
        ("visit", "location"),
        ("visit", "lat"),
        ("leave", "lat"),
        ("leave", "location"),
        ("leave", "nest"),
    ]
