import logging
import typing

from document_framework.exceptions import InvalidStateTransition
from document_framework.models.model import AbstractModel, Embed, Model


logger = logging.getLogger(__name__)


class AbstractCollection:
    """Tracks membership of a to-many field.

    Members are keyed by composite key. ``models`` is the live view and always equals
    ``(original - removed) + added`` in insertion order.
    """

    def __init__(
        self, store: "Store", models: typing.Iterable[AbstractModel] = (), total_count: typing.Optional[int] = None
    ) -> None:
        self.store = store
        self._loaded = True
        self._models: typing.Dict[str, AbstractModel] = {}
        self._original: typing.Dict[str, AbstractModel] = {}
        self._added: typing.Dict[str, AbstractModel] = {}
        self._removed: typing.Dict[str, AbstractModel] = {}
        self._set_models(models)
        self._total_count = len(self._models) if total_count is None else total_count

    @property
    def type(self) -> str:
        raise NotImplementedError

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def total_count(self) -> int:
        return self._total_count

    @property
    def original(self) -> typing.List[AbstractModel]:
        return list(self._original.values())

    @property
    def added(self) -> typing.List[AbstractModel]:
        return list(self._added.values())

    @property
    def removed(self) -> typing.List[AbstractModel]:
        return list(self._removed.values())

    def __iter__(self) -> typing.Iterator[AbstractModel]:
        self._load_from_store()
        return iter(list(self._models.values()))

    def __len__(self) -> int:
        return len(self._models)

    def __contains__(self, model: AbstractModel) -> bool:
        return self.has(model)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.type} {list(self._models)}>"

    def all_without_load(self) -> typing.List[AbstractModel]:
        return list(self._models.values())

    def single_result(self) -> typing.Optional[AbstractModel]:
        self._load_from_store()
        return next(iter(self._models.values()), None)

    def has(self, model: AbstractModel) -> bool:
        return model.composite_key in self._models

    def is_empty(self) -> bool:
        return len(self) == 0

    def has_dirty_models(self) -> bool:
        return any(model.is_dirty() for model in self._models.values())

    def is_dirty(self) -> bool:
        return bool(self._added) or bool(self._removed)

    def will_add(self, model: AbstractModel) -> bool:
        return model.composite_key in self._added

    def will_remove(self, model: AbstractModel) -> bool:
        return model.composite_key in self._removed

    def push(self, model: AbstractModel) -> None:
        self.validate_add(model)
        if self.will_add(model):
            return
        if self.will_remove(model):
            self._evict(self._removed, model)
            self._set(self._models, model)
            return
        if self._has_original(model):
            return
        self._set(self._added, model)
        self._set(self._models, model)

    def remove(self, model: AbstractModel) -> None:
        self.validate_add(model)
        if self.will_remove(model):
            return
        if self.will_add(model):
            self._evict(self._added, model)
            self._evict(self._models, model)
            return
        if self._has_original(model):
            self._evict(self._models, model)
            self._set(self._removed, model)

    def clear(self) -> None:
        self._models = {}
        self._added = {}
        self._removed = dict(self._original)
        self._total_count = 0

    def rollback(self) -> None:
        self._models = dict(self._original)
        self._added = {}
        self._removed = {}
        self._total_count = len(self._models)

    def calculate_change_set(self) -> typing.Dict[str, typing.List[AbstractModel]]:
        if not self.is_dirty():
            return {}
        return {"old": list(self._original.values()), "new": list(self._models.values())}

    def validate_add(self, model: AbstractModel) -> None:
        raise NotImplementedError

    def _load_from_store(self) -> None:
        pass

    def _add(self, model: AbstractModel) -> None:
        if self.has(model):
            return
        self.validate_add(model)
        if model.state.empty:
            self._loaded = False
        key = model.composite_key
        self._models[key] = model
        self._original.setdefault(key, model)

    def _set_models(self, models: typing.Iterable[AbstractModel]) -> None:
        for model in models:
            self._add(model)

    def _has_original(self, model: AbstractModel) -> bool:
        return model.composite_key in self._original

    def _set(self, storage: typing.Dict[str, AbstractModel], model: AbstractModel) -> None:
        if storage is self._models and model.composite_key not in storage:
            self._total_count += 1
        storage[model.composite_key] = model

    def _evict(self, storage: typing.Dict[str, AbstractModel], model: AbstractModel) -> None:
        if storage is self._models and model.composite_key in storage:
            self._total_count -= 1
        storage.pop(model.composite_key, None)


class ModelCollection(AbstractCollection):
    def __init__(
        self,
        metadata: "EntityMetadata",
        store: "Store",
        models: typing.Iterable[Model] = (),
        total_count: typing.Optional[int] = None,
    ) -> None:
        self.metadata = metadata
        super().__init__(store, models, total_count)

    @property
    def type(self) -> str:
        return self.metadata.type

    @property
    def query_field(self) -> str:
        raise NotImplementedError

    def identifiers(self, only_unloaded: bool = True) -> typing.List[str]:
        raise NotImplementedError

    def validate_add(self, model: AbstractModel) -> None:
        if not isinstance(model, Model):
            raise TypeError(f"The model must be an instance of Model, got {type(model).__name__}")
        self.store.validate_relationship_set(self.metadata, model.type)

    def _load_from_store(self) -> None:
        if self._loaded:
            return
        models = self.store.load_collection(self)
        logger.debug("Loaded %d %s models into collection", len(models), self.type)
        self._set_models(models)
        self._loaded = True


class Collection(ModelCollection):
    """Owning has-many collection (and query results): members are referenced by id."""

    @property
    def query_field(self) -> str:
        return "id"

    def identifiers(self, only_unloaded: bool = True) -> typing.List[str]:
        return [model.id for model in self._models.values() if not only_unloaded or model.state.empty]


class InverseCollection(ModelCollection):
    """Read-only has-many whose members reference the owner through ``inverse_field``.

    Nothing is known about the members until the collection is first iterated, which queries the
    related type for records whose ``inverse_field`` holds the owner.
    """

    def __init__(self, metadata: "EntityMetadata", store: "Store", owner: Model, inverse_field: str) -> None:
        super().__init__(metadata, store, ())
        self.owner = owner
        self.inverse_field = inverse_field
        self._loaded = False

    @property
    def query_field(self) -> str:
        return self.inverse_field

    @property
    def total_count(self) -> int:
        self._load_from_store()
        return self._total_count

    def identifiers(self, only_unloaded: bool = True) -> typing.List[str]:
        if self._loaded:
            return []
        return [self.owner.id]

    def __len__(self) -> int:
        self._load_from_store()
        return super().__len__()

    def has(self, model: AbstractModel) -> bool:
        self._load_from_store()
        return super().has(model)

    def all_without_load(self) -> typing.List[AbstractModel]:
        self._load_from_store()
        return super().all_without_load()

    def is_dirty(self) -> bool:
        return False

    def push(self, model: AbstractModel) -> None:
        raise InvalidStateTransition(f'Unable to push to the inverse collection of "{self.owner.composite_key}"')

    def remove(self, model: AbstractModel) -> None:
        raise InvalidStateTransition(f'Unable to remove from the inverse collection of "{self.owner.composite_key}"')

    def clear(self) -> None:
        raise InvalidStateTransition(f'Unable to clear the inverse collection of "{self.owner.composite_key}"')

    def _load_from_store(self) -> None:
        if self._loaded:
            return
        models = self.store.load_collection(self)
        self._loaded = True
        logger.debug("Loaded %d %s models into inverse collection", len(models), self.type)
        self._set_models(models)
        self._total_count = len(self._models)

    def _add(self, model: AbstractModel) -> None:
        if super().has(model):
            return
        self.validate_add(model)
        key = model.composite_key
        self._models[key] = model
        self._original.setdefault(key, model)


class EmbedCollection(AbstractCollection):
    def __init__(self, metadata: "EmbedMetadata", store: "Store", models: typing.Iterable[Embed] = ()) -> None:
        self.metadata = metadata
        super().__init__(store, models)

    @property
    def type(self) -> str:
        return self.metadata.name

    def is_dirty(self) -> bool:
        return self.has_dirty_models() or super().is_dirty()

    def rollback(self) -> None:
        super().rollback()
        for embed in self._models.values():
            embed.rollback()

    def snapshot(self) -> typing.List[typing.Dict[str, typing.Any]]:
        return [embed.snapshot() for embed in self._models.values()]

    def validate_add(self, model: AbstractModel) -> None:
        if not isinstance(model, Embed):
            raise TypeError(f"The model must be an instance of Embed, got {type(model).__name__}")
        self.store.validate_embed_set(self.metadata, model.name)
