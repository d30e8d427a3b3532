"""Capabilities the engine depends on: store lookups and upload removal."""

from request_validator.data.files import FileCleanup, LocalFileCleanup
from request_validator.data.lookup import QueryCapability, SqlAlchemyQuery, create_query_from_settings

__all__ = [
    "FileCleanup",
    "LocalFileCleanup",
    "QueryCapability",
    "SqlAlchemyQuery",
    "create_query_from_settings"
]
