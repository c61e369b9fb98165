import re
import typing

import inflection

from document_framework.exceptions import SchemaError


DASH = "dash"
UNDERSCORE = "underscore"
CAMELCASE = "camelcase"
STUDLYCAPS = "studlycaps"

patterns = {
    STUDLYCAPS: re.compile(r"^[A-Z][a-zA-Z]*$"),
    CAMELCASE: re.compile(r"^[a-z][a-zA-Z]*$"),
    DASH: re.compile(r"^(?!.*--.*)[a-z][a-z-]*(?<!-)$"),
    UNDERSCORE: re.compile(r"^(?!.*__.*)[a-z][a-z_]*(?<!_)$"),
}


def _underscore(word: str) -> str:
    return inflection.underscore(word)


formatters: typing.Dict[str, typing.Callable[[str], str]] = {
    DASH: lambda word: inflection.dasherize(_underscore(word)),
    UNDERSCORE: _underscore,
    CAMELCASE: lambda word: inflection.camelize(_underscore(word), uppercase_first_letter=False),
    STUDLYCAPS: lambda word: inflection.camelize(_underscore(word)),
}


def is_format_valid(name_format: str) -> bool:
    return name_format in patterns


def ensure_format(name_format: str) -> str:
    if not is_format_valid(name_format):
        raise SchemaError(f'Unknown name format "{name_format}". Valid formats are {sorted(patterns)}')
    return name_format


def is_name_valid(name_format: str, name: typing.Any) -> bool:
    if not is_format_valid(name_format) or not isinstance(name, str):
        return False
    return patterns[name_format].match(name) is not None


def format_name(name_format: str, name: str) -> str:
    """Converts ``name`` into the given format, e.g. ``format_name("dash", "blogPost") == "blog-post"``."""
    return formatters[ensure_format(name_format)](name)


def default_location(type_key: str) -> str:
    return inflection.pluralize(inflection.underscore(type_key))
