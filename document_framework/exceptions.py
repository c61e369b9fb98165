class DocumentFrameworkError(Exception):
    pass


class SchemaError(DocumentFrameworkError):
    pass


class SchemaNotFound(SchemaError):
    def __init__(self, type_key: str) -> None:
        super().__init__(f'No schema definition was found for type "{type_key}"')
        self.type_key = type_key


class StoreError(DocumentFrameworkError):
    pass


class RecordNotFound(StoreError):
    def __init__(self, type_key: str, identifier: str) -> None:
        super().__init__(f'No record found for type "{type_key}" using id "{identifier}"')
        self.type_key = type_key
        self.identifier = identifier


class AbstractTypeError(StoreError):
    pass


class DuplicateIdentity(StoreError):
    pass


class InvalidResourceType(DocumentFrameworkError):
    pass


class InvalidRelationshipType(InvalidResourceType):
    pass


class InvalidStateTransition(DocumentFrameworkError):
    pass


class PersisterError(DocumentFrameworkError):
    pass


class PersisterTimeout(PersisterError):
    pass


class TypeConversionError(TypeError, DocumentFrameworkError):
    pass
