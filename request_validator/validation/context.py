import logging
import time
from collections.abc import Mapping
from typing import Any, Iterable, Optional, Set

from request_validator.data.files import FileCleanup
from request_validator.data.lookup import QueryCapability, build_count_query
from request_validator.metrics import existence_lookup_latency_seconds, file_cleanup_total
from request_validator.models.validation import UploadedFile, ValidationRequest
from request_validator.utils.error_handling import ErrorCollector, LookupNotConfiguredError

logger = logging.getLogger(__name__)


class ValidationContext:
    """
    Per-call state shared by the rules of one validation run.
    Created fresh for every call and discarded with it.
    """
    def __init__(
        self,
        request: ValidationRequest,
        lookup: Optional[QueryCapability] = None,
        file_cleanup: Optional[FileCleanup] = None,
    ):
        self.request = request
        self.lookup = lookup
        self.file_cleanup = file_cleanup
        self.errors = ErrorCollector()
        self.removed_paths: Set[str] = set()

    @property
    def body(self):
        return self.request.body

    def files_for(self, field: str):
        return self.request.files.get(field) or []

    async def count_matches(self, rule: str, table: str, column: str, value: Any, field: Optional[str] = None) -> int:
        """
        Count rows of ``table`` whose ``column`` equals ``value``.

        Store errors are logged and re-raised; they abort the whole validation.
        """
        if self.lookup is None:
            raise LookupNotConfiguredError(rule, field)
        sql = build_count_query(table, column)
        started = time.perf_counter()
        try:
            rows = await self.lookup.query(sql, [value])
        except Exception as e:
            logger.error(
                f"Existence lookup failed for {rule} rule on {table}.{column}: {e}",
                extra={"rule": rule, "table": table, "column": column, "field": field},
            )
            raise
        finally:
            existence_lookup_latency_seconds.labels(rule=rule).observe(time.perf_counter() - started)
        return _row_count(rows)

    async def remove_files(self, uploads: Iterable[UploadedFile]) -> int:
        """
        Best-effort removal of uploaded files. Each path is removed at most once
        per run; failures are logged and never raised. Returns how many files
        were actually deleted.
        """
        if self.file_cleanup is None:
            return 0
        deleted = 0
        for upload in uploads:
            if upload.path in self.removed_paths:
                continue
            self.removed_paths.add(upload.path)
            try:
                await self.file_cleanup.unlink(upload.path)
            except Exception as e:
                file_cleanup_total.labels(status="error").inc()
                logger.warning(
                    f"Could not remove upload {upload.path}: {e}",
                    extra={"path": upload.path, "field": upload.fieldname},
                )
                continue
            file_cleanup_total.labels(status="deleted").inc()
            deleted += 1
        return deleted


def _row_count(rows: Any) -> int:
    if not rows:
        return 0
    row = rows[0]
    if isinstance(row, Mapping):
        return int(row["count"])
    return int(getattr(row, "count"))
