"""
Domain error types.

Policy outcomes (login or upgrade required) are not errors; they come back as
Decision values. Everything here is raised for requests that cannot proceed.
"""


class ConverterAppError(Exception):
    """Base class for all domain errors."""

    code = "converter_error"


class UnsupportedFormatError(ConverterAppError):
    """The uploaded file's extension is not in the format table."""

    code = "unsupported_format"

    def __init__(self, filename: str):
        super().__init__(f"Format file tidak didukung: {filename}")
        self.filename = filename


class InvalidTargetError(ConverterAppError):
    """The requested target format equals the source or is not offered."""

    code = "invalid_target"


class InvalidTransitionError(ConverterAppError):
    """An operation was invoked from a state where it is not valid."""

    code = "invalid_transition"

    def __init__(self, operation: str, state: str):
        super().__init__(f"'{operation}' is not allowed in state '{state}'")
        self.operation = operation
        self.state = state


class MissingSelectionError(ConverterAppError):
    """Subscription confirmation without a bound plan or payment channel."""

    code = "missing_selection"


class UnknownCatalogEntryError(ConverterAppError):
    """Plan or payment channel id not present in the catalog."""

    code = "unknown_catalog_entry"


class ConversionExecutionError(ConverterAppError):
    """The conversion collaborator failed to produce an output file."""

    code = "conversion_failed"


class PersistenceFailedError(ConverterAppError):
    """A record append or quota increment could not be confirmed."""

    code = "persistence_failed"


class CatalogError(ConverterAppError):
    """Missing or malformed plan / payment channel catalog. Fatal at startup."""

    code = "catalog_error"
