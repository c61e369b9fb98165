import typing
from datetime import date, datetime
from functools import singledispatch

from document_framework.models.collections import AbstractCollection
from document_framework.models.model import Embed, Model


Document = typing.Dict[str, typing.Any]

ONE_SECTIONS = ("attributes", "embed_one", "has_one")
MANY_SECTIONS = ("embed_many", "has_many")


@singledispatch
def to_storage(argument: typing.Any) -> typing.Any:
    return argument


@to_storage.register(Model)
def _(argument: Model) -> Document:
    return {"type": argument.type, "id": argument.id}


@to_storage.register(Embed)
def _(argument: Embed) -> Document:
    document: Document = {}
    for key, field in argument.metadata.properties.items():
        if not field.should_save() or argument.is_calculated_attribute(key):
            continue
        value = to_storage(argument.get(key))
        if value is not None and value != []:
            document[key] = value
    return document


@to_storage.register(AbstractCollection)
def _(argument: AbstractCollection) -> typing.List[typing.Any]:
    return [to_storage(model) for model in argument.all_without_load()]


@to_storage.register(datetime)
@to_storage.register(date)
def _(argument: date) -> str:
    return argument.isoformat()


@to_storage.register(list)
@to_storage.register(tuple)
def _(argument: typing.Sequence[typing.Any]) -> typing.List[typing.Any]:
    return [to_storage(element) for element in argument]


@to_storage.register(dict)
def _(argument: Document) -> Document:
    return {key: to_storage(value) for key, value in argument.items()}


def changed_values(model: Model) -> Document:
    """Flattens a model change set into ``{key: new storage value}``; ``None`` marks a removal."""
    change_set = model.get_change_set()
    values: Document = {}
    for section in ONE_SECTIONS:
        for key, change in change_set.get(section, {}).items():
            values[key] = to_storage(change["new"])
    for section in MANY_SECTIONS:
        for key, change in change_set.get(section, {}).items():
            values[key] = to_storage(change["new"]) or None
    return values


def create_document(model: Model) -> Document:
    return {key: value for key, value in changed_values(model).items() if value is not None}


def apply_changes(document: Document, model: Model) -> Document:
    document = dict(document)
    for key, value in changed_values(model).items():
        if value is None:
            document.pop(key, None)
        else:
            document[key] = value
    return document
