import copy
import logging
import typing
import uuid

from document_framework.exceptions import PersisterError
from document_framework.persister import Criteria, Persister, Record, RecordSet, Sort, apply_query, types_for
from document_framework.storages.documents import apply_changes, create_document


logger = logging.getLogger(__name__)


class MemoryPersister(Persister):
    """Keeps records in dictionaries keyed by persistence location, then by id."""

    def __init__(self, key: str = "memory") -> None:
        self.key = key
        self._locations: typing.Dict[str, typing.Dict[str, Record]] = {}

    def add_record(self, location: str, record: Record) -> None:
        """Seeds a record directly, bypassing models."""
        self._locations.setdefault(location, {})[record.id] = copy.deepcopy(record)

    def records(self, location: str) -> typing.List[Record]:
        return [copy.deepcopy(record) for record in self._locations.get(location, {}).values()]

    def retrieve(self, metadata: "EntityMetadata", identifier: str) -> typing.Optional[Record]:
        record = self._storage_for(metadata).get(identifier)
        if record is None or record.type not in types_for(metadata):
            return None
        return copy.deepcopy(record)

    def all(
        self,
        metadata: "EntityMetadata",
        identifiers: typing.Sequence[str] = (),
        fields: typing.Sequence[str] = (),
        sort: typing.Optional[Sort] = None,
        offset: int = 0,
        limit: int = 0,
    ) -> RecordSet:
        criteria = {"id": list(identifiers)} if identifiers else {}
        return self._find(metadata, criteria, sort, offset, limit)

    def inverse(
        self,
        owner: "EntityMetadata",
        related: "EntityMetadata",
        identifiers: typing.Sequence[str],
        inverse_field: str,
    ) -> RecordSet:
        return self._find(related, {inverse_field: list(identifiers)})

    def query(
        self,
        metadata: "EntityMetadata",
        criteria: Criteria,
        fields: typing.Sequence[str] = (),
        sort: typing.Optional[Sort] = None,
        offset: int = 0,
        limit: int = 0,
    ) -> RecordSet:
        return self._find(metadata, criteria, sort, offset, limit)

    def create(self, model: "Model") -> None:
        storage = self._storage_for(model.metadata)
        if model.id in storage:
            raise PersisterError(f'A record already exists for "{model.composite_key}"')
        storage[model.id] = Record(model.type, model.id, create_document(model))
        logger.debug("Inserted %s into %s", model.composite_key, model.metadata.persistence.location)

    def update(self, model: "Model") -> None:
        storage = self._storage_for(model.metadata)
        record = storage.get(model.id)
        if record is None:
            raise PersisterError(f'Unable to update "{model.composite_key}": no record found')
        storage[model.id] = Record(record.type, record.id, apply_changes(record.properties, model))

    def delete(self, model: "Model") -> None:
        storage = self._storage_for(model.metadata)
        if storage.pop(model.id, None) is None:
            raise PersisterError(f'Unable to delete "{model.composite_key}": no record found')

    def generate_id(self) -> str:
        return uuid.uuid4().hex

    def create_schemata(self, metadata: "EntityMetadata") -> None:
        self._storage_for(metadata)

    def _storage_for(self, metadata: "EntityMetadata") -> typing.Dict[str, Record]:
        return self._locations.setdefault(metadata.persistence.location, {})

    def _find(
        self,
        metadata: "EntityMetadata",
        criteria: Criteria,
        sort: typing.Optional[Sort] = None,
        offset: int = 0,
        limit: int = 0,
    ) -> RecordSet:
        types = types_for(metadata)
        candidates = [copy.deepcopy(record) for record in self._storage_for(metadata).values() if record.type in types]
        return apply_query(candidates, criteria, sort, offset, limit)
