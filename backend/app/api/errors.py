"""Mapping of domain errors to HTTP responses."""

from fastapi import HTTPException

from app.errors import (
    CatalogError,
    ConversionExecutionError,
    ConverterAppError,
    InvalidTargetError,
    InvalidTransitionError,
    MissingSelectionError,
    PersistenceFailedError,
    UnknownCatalogEntryError,
    UnsupportedFormatError,
)

ERROR_STATUS_MAP: dict[type[ConverterAppError], int] = {
    UnsupportedFormatError: 400,
    InvalidTargetError: 400,
    MissingSelectionError: 400,
    UnknownCatalogEntryError: 404,
    InvalidTransitionError: 409,
    ConversionExecutionError: 502,
    PersistenceFailedError: 502,
    CatalogError: 500,
}


def http_error(error: ConverterAppError) -> HTTPException:
    status_code = ERROR_STATUS_MAP.get(type(error), 400)
    return HTTPException(
        status_code=status_code,
        detail={"code": error.code, "message": str(error)},
    )
