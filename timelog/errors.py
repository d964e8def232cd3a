"""Exception types shared by the storage, prompt and CLI layers."""


class TimelogError(Exception):
    """Base class for all timelog errors."""


class DatabaseConnectionError(TimelogError, ConnectionError):
    """A database file is missing, unreadable, or could not be opened."""


class SchemaError(TimelogError):
    """The entries table or its writable columns could not be worked out."""


class QueryError(TimelogError):
    """A SELECT or write statement failed inside the driver."""


class FormatError(TimelogError, ValueError):
    """User input does not match the expected format."""
