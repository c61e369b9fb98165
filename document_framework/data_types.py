import typing
from datetime import date, datetime, timezone

from document_framework.exceptions import TypeConversionError


Converter = typing.Callable[[typing.Any], typing.Any]


def to_array(value: typing.Any) -> list:
    if not value:
        return []
    if isinstance(value, dict):
        return list(value.values())
    return list(value)


def to_boolean(value: typing.Any) -> typing.Optional[bool]:
    if value is None:
        return None
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    return bool(value)


def to_date(value: typing.Any) -> typing.Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        raise TypeConversionError(f"Unable to convert {value!r} to a date")


def to_float(value: typing.Any) -> typing.Optional[float]:
    if value is None:
        return None
    return float(value)


def to_integer(value: typing.Any) -> typing.Optional[int]:
    if value is None:
        return None
    return int(float(value)) if isinstance(value, str) else int(value)


def to_mixed(value: typing.Any) -> typing.Any:
    return value


def to_object(value: typing.Any) -> typing.Optional[dict]:
    if not value:
        return None
    return dict(value)


def to_string(value: typing.Any) -> typing.Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


class TypeFactory:
    """Holds the attribute data types known to the schema, keyed by name."""

    def __init__(self) -> None:
        self._types: typing.Dict[str, Converter] = {
            "array": to_array,
            "boolean": to_boolean,
            "date": to_date,
            "float": to_float,
            "integer": to_integer,
            "mixed": to_mixed,
            "object": to_object,
            "string": to_string,
        }

    @property
    def types(self) -> typing.List[str]:
        return list(self._types)

    def has_type(self, name: str) -> bool:
        return name in self._types

    def add_type(self, name: str, converter: Converter) -> None:
        if self.has_type(name):
            raise TypeConversionError(f'The type "{name}" already exists.')
        self._types[name] = converter

    def override_type(self, name: str, converter: Converter) -> None:
        if not self.has_type(name):
            raise TypeConversionError(f'The type "{name}" was not found.')
        self._types[name] = converter

    def convert(self, name: str, value: typing.Any) -> typing.Any:
        try:
            converter = self._types[name]
        except KeyError:
            raise TypeConversionError(f'Unsupported type - "{name}"')
        try:
            return converter(value)
        except TypeConversionError:
            raise
        except (TypeError, ValueError) as error:
            raise TypeConversionError(f'Unable to convert {value!r} to "{name}" - {error}') from error
