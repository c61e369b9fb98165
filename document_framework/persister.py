import abc
import typing

import attr

from document_framework.exceptions import InvalidResourceType, PersisterError


Sort = typing.Mapping[str, int]
Criteria = typing.Mapping[str, typing.Any]


@attr.s(auto_attribs=True)
class Record:
    """A backing-store document flattened to ``(type, id, properties)``.

    Has-one relationships are ``{"type": ..., "id": ...}`` references, has-many relationships lists
    of them and embeds plain (nested) mappings.
    """

    type: str
    id: str
    properties: typing.Dict[str, typing.Any] = attr.Factory(dict)


@attr.s(auto_attribs=True)
class RecordSet:
    records: typing.List[Record] = attr.Factory(list)
    total_count: typing.Optional[int] = None

    def __attrs_post_init__(self) -> None:
        if self.total_count is None:
            self.total_count = len(self.records)

    def __iter__(self) -> typing.Iterator[Record]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def single_result(self) -> typing.Optional[Record]:
        return self.records[0] if self.records else None


class Persister(abc.ABC):
    """Storage adapter used by the store; one instance per persistence key."""

    key: str = None
    identifier_key = "_id"
    polymorphic_key = "_type"

    @abc.abstractmethod
    def retrieve(self, metadata: "EntityMetadata", identifier: str) -> typing.Optional[Record]:
        pass

    @abc.abstractmethod
    def all(
        self,
        metadata: "EntityMetadata",
        identifiers: typing.Sequence[str] = (),
        fields: typing.Sequence[str] = (),
        sort: typing.Optional[Sort] = None,
        offset: int = 0,
        limit: int = 0,
    ) -> RecordSet:
        pass

    @abc.abstractmethod
    def inverse(
        self,
        owner: "EntityMetadata",
        related: "EntityMetadata",
        identifiers: typing.Sequence[str],
        inverse_field: str,
    ) -> RecordSet:
        pass

    @abc.abstractmethod
    def query(
        self,
        metadata: "EntityMetadata",
        criteria: Criteria,
        fields: typing.Sequence[str] = (),
        sort: typing.Optional[Sort] = None,
        offset: int = 0,
        limit: int = 0,
    ) -> RecordSet:
        pass

    @abc.abstractmethod
    def create(self, model: "Model") -> None:
        pass

    @abc.abstractmethod
    def update(self, model: "Model") -> None:
        pass

    @abc.abstractmethod
    def delete(self, model: "Model") -> None:
        pass

    @abc.abstractmethod
    def generate_id(self) -> typing.Any:
        pass

    def convert_id(self, identifier: typing.Any) -> typing.Any:
        return str(identifier)

    def create_schemata(self, metadata: "EntityMetadata") -> None:
        pass

    def extract_type(self, metadata: "EntityMetadata", data: typing.Mapping[str, typing.Any]) -> str:
        """Returns the concrete type of a raw document loaded for ``metadata``."""
        if not metadata.polymorphic:
            return metadata.type
        type_key = data.get(self.polymorphic_key)
        if type_key is None:
            raise PersisterError(
                f'Unable to extract the polymorphic type for "{metadata.type}": no "{self.polymorphic_key}" value'
            )
        if type_key not in metadata.owned_types:
            raise InvalidResourceType(f'The type "{type_key}" is not owned by the polymorphic type "{metadata.type}"')
        return type_key


class PersisterManager:
    def __init__(self, persisters: typing.Iterable[Persister] = ()) -> None:
        self._persisters: typing.Dict[str, Persister] = {}
        for persister in persisters:
            self.add_persister(persister)

    def add_persister(self, persister: Persister) -> None:
        self._persisters[persister.key] = persister

    def has_persister(self, key: str) -> bool:
        return key in self._persisters

    def get_persister(self, key: str) -> Persister:
        try:
            return self._persisters[key]
        except KeyError:
            raise PersisterError(f'No persister registered for key "{key}"')

    def __iter__(self) -> typing.Iterator[Persister]:
        return iter(self._persisters.values())


def types_for(metadata: "EntityMetadata") -> typing.List[str]:
    """Concrete types whose records may be returned when ``metadata`` is queried."""
    if metadata.polymorphic:
        return list(metadata.owned_types)
    return [metadata.type]


def _reference_matches(stored: typing.Any, expected: typing.Any) -> bool:
    if isinstance(stored, list):
        return any(_reference_matches(element, expected) for element in stored)
    if isinstance(stored, dict) and "id" in stored and not isinstance(expected, dict):
        return stored["id"] == expected
    return stored == expected


def record_matches(record: Record, criteria: Criteria) -> bool:
    """Equality matching of a record against criteria; a list criterion matches any of its values."""
    for key, expected in criteria.items():
        if key == "id":
            stored = record.id
        elif key == "type":
            stored = record.type
        else:
            stored = record.properties.get(key)
        candidates = expected if isinstance(expected, (list, tuple, set)) else [expected]
        if not any(_reference_matches(stored, candidate) for candidate in candidates):
            return False
    return True


def _sort_value(record: Record, key: str) -> typing.Tuple[bool, typing.Any]:
    value = record.id if key == "id" else record.properties.get(key)
    return value is None, value if value is not None else 0


def apply_query(
    records: typing.Iterable[Record],
    criteria: typing.Optional[Criteria] = None,
    sort: typing.Optional[Sort] = None,
    offset: int = 0,
    limit: int = 0,
) -> RecordSet:
    matching = [record for record in records if record_matches(record, criteria or {})]
    for key, direction in reversed(list((sort or {}).items())):
        matching.sort(key=lambda record: _sort_value(record, key), reverse=direction < 0)
    total_count = len(matching)
    matching = matching[offset:]
    if limit:
        matching = matching[:limit]
    return RecordSet(matching, total_count)
