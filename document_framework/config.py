import typing

import attr

from document_framework import naming


ChildTypePolicy = typing.Callable[[str, str], bool]


def prefixed_child_type(child_type: str, parent_type: str) -> bool:
    return child_type.startswith(parent_type)


def unrestricted_child_type(child_type: str, parent_type: str) -> bool:
    return True


@attr.s(auto_attribs=True)
class Configuration:
    entity_format: str = attr.ib(default=naming.DASH, validator=lambda _, __, value: naming.ensure_format(value))
    field_key_format: str = attr.ib(
        default=naming.CAMELCASE, validator=lambda _, __, value: naming.ensure_format(value)
    )
    child_type_policy: ChildTypePolicy = prefixed_child_type
    persister_timeout: typing.Optional[float] = None
    collection_auto_init: bool = True

    @classmethod
    def from_mapping(cls, settings: typing.Mapping[str, typing.Any]) -> "Configuration":
        known = {field.name for field in attr.fields(cls)}
        unknown = set(settings) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys - {sorted(unknown)}")
        return cls(**settings)

    def is_entity_type_valid(self, value: str) -> bool:
        return naming.is_name_valid(self.entity_format, value)

    def is_field_key_valid(self, value: str) -> bool:
        return naming.is_name_valid(self.field_key_format, value)
