import copy
import logging
import typing
import uuid

from sqlalchemy.orm import DeclarativeMeta, Session

from document_framework.exceptions import PersisterError
from document_framework.persister import Criteria, Persister, Record, RecordSet, Sort, apply_query, types_for
from document_framework.storages.documents import apply_changes, create_document
from document_framework.storages.sqlalchemy.raw_model import RawModel
from document_framework.storages.sqlalchemy.registry import SaRegistry


logger = logging.getLogger(__name__)


class SqlAlchemyPersister(Persister):
    """Stores documents in SQL tables named after their persistence location.

    Every table holds ``id``, ``type`` and a JSON ``properties`` column, so polymorphic types
    sharing a location share a table. Criteria and sorting are evaluated on the loaded documents.
    """

    def __init__(
        self, session: Session, base: DeclarativeMeta, registry: SaRegistry = None, key: str = "sqlalchemy"
    ) -> None:
        self.key = key
        self._session = session
        self._base = base
        self._registry = registry or SaRegistry()

    def model_for(self, metadata: "EntityMetadata") -> typing.Type[DeclarativeMeta]:
        location = metadata.persistence.location
        if location not in self._registry.locations_models:
            model_cls = RawModel.for_location(location, self._base).materialize()
            logger.debug("Mapped location %s to %s", location, model_cls.__name__)
            self._registry.locations_models[location] = model_cls
        return self._registry.locations_models[location]

    def create_schemata(self, metadata: "EntityMetadata") -> None:
        self.model_for(metadata).__table__.create(bind=self._session.get_bind(), checkfirst=True)

    def retrieve(self, metadata: "EntityMetadata", identifier: str) -> typing.Optional[Record]:
        row = self._session.get(self.model_for(metadata), identifier)
        if row is None or row.type not in types_for(metadata):
            return None
        return self._to_record(row)

    def all(
        self,
        metadata: "EntityMetadata",
        identifiers: typing.Sequence[str] = (),
        fields: typing.Sequence[str] = (),
        sort: typing.Optional[Sort] = None,
        offset: int = 0,
        limit: int = 0,
    ) -> RecordSet:
        model_cls = self.model_for(metadata)
        query = self._session.query(model_cls).filter(model_cls.type.in_(types_for(metadata)))
        if identifiers:
            query = query.filter(model_cls.id.in_(list(identifiers)))
        return apply_query((self._to_record(row) for row in query), None, sort, offset, limit)

    def inverse(
        self,
        owner: "EntityMetadata",
        related: "EntityMetadata",
        identifiers: typing.Sequence[str],
        inverse_field: str,
    ) -> RecordSet:
        return self.query(related, {inverse_field: list(identifiers)})

    def query(
        self,
        metadata: "EntityMetadata",
        criteria: Criteria,
        fields: typing.Sequence[str] = (),
        sort: typing.Optional[Sort] = None,
        offset: int = 0,
        limit: int = 0,
    ) -> RecordSet:
        model_cls = self.model_for(metadata)
        rows = self._session.query(model_cls).filter(model_cls.type.in_(types_for(metadata)))
        return apply_query((self._to_record(row) for row in rows), criteria, sort, offset, limit)

    def create(self, model: "Model") -> None:
        model_cls = self.model_for(model.metadata)
        if self._session.get(model_cls, model.id) is not None:
            raise PersisterError(f'A record already exists for "{model.composite_key}"')
        self._session.add(model_cls(id=model.id, type=model.type, properties=create_document(model)))
        self._session.flush()
        logger.debug("Inserted %s into %s", model.composite_key, model_cls.__tablename__)

    def update(self, model: "Model") -> None:
        row = self._get_row(model)
        # a new mapping is assigned so the JSON column is flagged as modified
        row.properties = apply_changes(row.properties, model)
        self._session.flush()

    def delete(self, model: "Model") -> None:
        self._session.delete(self._get_row(model))
        self._session.flush()

    def generate_id(self) -> str:
        return uuid.uuid4().hex

    def _get_row(self, model: "Model") -> typing.Any:
        row = self._session.get(self.model_for(model.metadata), model.id)
        if row is None:
            raise PersisterError(f'No record found for "{model.composite_key}"')
        return row

    @staticmethod
    def _to_record(row: typing.Any) -> Record:
        return Record(row.type, row.id, copy.deepcopy(row.properties))
