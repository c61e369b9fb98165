from document_framework.models.collections import (
    AbstractCollection,
    Collection,
    EmbedCollection,
    InverseCollection,
    ModelCollection,
)
from document_framework.models.model import AbstractModel, Embed, Model
from document_framework.models.state import State


__all__ = [
    "AbstractCollection",
    "AbstractModel",
    "Collection",
    "Embed",
    "EmbedCollection",
    "InverseCollection",
    "Model",
    "ModelCollection",
    "State",
]
