from typing import Dict, Tuple, Type

import attr
import inflection
from sqlalchemy import JSON, Column, String


@attr.s(auto_attribs=True)
class RawModel:
    """Declarative class under construction. Nothing touches the SQLAlchemy registry until ``materialize``."""

    name: str
    bases: Tuple[Type, ...]
    namespace: Dict = attr.Factory(dict)

    @classmethod
    def for_location(cls, location: str, base: Type) -> "RawModel":
        """Document table for ``location``: the id, the concrete type and every other property as JSON."""
        raw_model = cls(name=f"{inflection.camelize(location)}Document", bases=(base,))
        raw_model.set_table(location)
        raw_model.append_column("id", Column(String(255), primary_key=True))
        raw_model.append_column("type", Column(String(255), index=True, nullable=False))
        raw_model.append_column("properties", Column(JSON, nullable=False, default=dict))
        return raw_model

    def set_table(self, table_name: str) -> None:
        self.namespace["__tablename__"] = table_name

    def append_column(self, name: str, column: Column) -> None:
        if name in self.namespace:
            raise ValueError(f'Column "{name}" is already declared on {self.name}')
        self.namespace[name] = column

    def materialize(self) -> Type:
        return type(self.name, self.bases, self.namespace)
