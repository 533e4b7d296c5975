"""Exception hierarchy for content collections.

Configuration and query problems are raised; item-level problems never are.
Those are recorded on the item as validation errors so a single bad file
cannot take down its collection.
"""


class ContentCollectionsError(Exception):
    """Base exception for all content collection errors."""

    pass


class ConfigurationError(ContentCollectionsError):
    """The collections configuration could not be read at all."""

    pass


class SchemaConfigError(ConfigurationError):
    """A collection's schema definition is structurally invalid."""

    def __init__(self, message: str, collection: str | None = None, field: str | None = None):
        self.collection = collection
        self.field = field
        location = ""
        if collection:
            location = f"collection '{collection}'"
            if field:
                location += f", field '{field}'"
            location = f" ({location})"
        super().__init__(f"{message}{location}")


class CollectionNotFoundError(ContentCollectionsError):
    """No collection with the requested name is configured."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Collection not found: {name}")


class CollectionUnavailableError(ContentCollectionsError):
    """The collection is configured but failed to load."""

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"Collection '{name}' is unavailable: {reason}")


class ContentParseError(ContentCollectionsError):
    """A content file could not be turned into metadata and body."""

    def __init__(self, message: str, path: str | None = None, kind: str = "parse-failure"):
        self.path = path
        self.kind = kind
        super().__init__(message)


class IdentifierError(ContentCollectionsError):
    """Neither the declared slug nor the filename yields a usable identifier."""

    pass
