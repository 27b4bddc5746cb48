"""
Batch ingestor - drive the row mapper over a whole batch for one branch.
"""
import asyncio
import logging
import uuid
from datetime import datetime
from functools import partial
from typing import Dict, List, Optional, Sequence, Set, Tuple

from lead_engine.core.exceptions import (
    AlreadyExistsError, ConfigurationError, NotFoundError, RegistryUnavailableError, StoreUnavailableError
)
from lead_engine.core.retry import retry_async
from lead_engine.models.branch import Branch, FieldMapping
from lead_engine.schemas.ingestion import (
    DuplicateScope, FailureReason, FieldFailure, IngestionReport,
    RawRecord, Rejected, RowOutcome, RowStatus
)
from lead_engine.services.coercion import is_empty
from lead_engine.services.integrations.base import LeadStore
from lead_engine.services.row_mapper import map_row
from lead_engine.services.schema_registry import SchemaRegistry

logger = logging.getLogger(__name__)

# field_key of a failure that concerns the whole row rather than one field
ROW_FAILURE_KEY = "*"


class BatchIngestor:
    """
    Maps, de-duplicates and persists a batch of raw records.

    Each call to `ingest` owns its own duplicate-detection state, so one
    ingestor can serve concurrent batches. Row problems are recorded in the
    report; only an unusable branch aborts the run (ConfigurationError).
    """

    def __init__(
        self,
        registry: SchemaRegistry,
        store: LeadStore,
        retry_attempts: Optional[int] = None,
        retry_backoff: Optional[float] = None,
        timeout: Optional[float] = None,
    ):
        self.registry = registry
        self.store = store
        self.retry_attempts = retry_attempts
        self.retry_backoff = retry_backoff
        self.timeout = timeout

    async def ingest(
        self,
        records: Sequence[RawRecord],
        branch_identifier,
        report: Optional[IngestionReport] = None,
    ) -> IngestionReport:
        """
        Ingest `records` into a branch and report every row's outcome in input order.

        A caller-supplied `report` is filled in place, so rows processed
        before a cancellation stay available to the caller.
        """
        branch, mappings = await self._load_schema(branch_identifier)

        if report is None:
            report = IngestionReport()
        report.branch_id = branch.id

        if not mappings:
            logger.warning(f"Branch '{branch.name}' has no field mappings; rows map to empty leads")

        seen: Dict[str, Set[str]] = {m.field_key: set() for m in mappings if m.is_unique}
        try:
            for index, record in enumerate(records):
                outcome = await self._ingest_row(index, record, branch.id, mappings, seen)
                report.outcomes.append(outcome)
        except asyncio.CancelledError:
            report.cancelled = True
            logger.warning(
                f"Ingestion for branch '{branch.name}' cancelled after "
                f"{len(report.outcomes)} of {len(records)} rows"
            )
            raise
        finally:
            report.finished_at = datetime.utcnow()

        logger.info(
            f"Ingested {report.total} rows for branch '{branch.name}': "
            f"{report.accepted} accepted, {report.rejected} rejected, {report.duplicates} duplicates"
        )
        return report

    async def _load_schema(self, branch_identifier) -> Tuple[Branch, List[FieldMapping]]:
        try:
            branch = await self._call(
                partial(self.registry.get_branch, branch_identifier), "branch lookup"
            )
            mappings = await self._call(
                partial(self.registry.get_mappings, branch.id), "mapping fetch"
            )
        except NotFoundError as e:
            raise ConfigurationError(f"Unknown branch '{branch_identifier}'", str(branch_identifier)) from e
        except StoreUnavailableError as e:
            raise RegistryUnavailableError(
                f"Schema registry unavailable: {e.message}", str(branch_identifier)
            ) from e

        if not branch.is_active:
            raise ConfigurationError(f"Branch '{branch.name}' is inactive", branch.name)
        return branch, mappings

    async def _ingest_row(
        self,
        index: int,
        record: RawRecord,
        branch_id: uuid.UUID,
        mappings: List[FieldMapping],
        seen: Dict[str, Set[str]],
    ) -> RowOutcome:
        result = map_row(record, mappings, branch_id)
        if isinstance(result, Rejected):
            return self._rejected(index, record, result.failures)
        lead = result.lead

        # First occurrence in the batch wins
        for field_key, value in lead.unique_keys.items():
            if value in seen[field_key]:
                return self._duplicate(index, record, field_key, DuplicateScope.BATCH)

        for field_key, value in lead.unique_keys.items():
            try:
                unique = await self._call(
                    partial(self.store.check_unique, branch_id, field_key, value),
                    f"uniqueness check on '{field_key}'",
                )
            except StoreUnavailableError as e:
                return self._store_failure(index, record, field_key, e)
            if not unique:
                return self._duplicate(index, record, field_key, DuplicateScope.STORE)

        try:
            lead_id = await self._call(partial(self.store.persist, lead), "lead persist")
        except AlreadyExistsError as e:
            return self._duplicate(index, record, e.field or ROW_FAILURE_KEY, DuplicateScope.STORE)
        except StoreUnavailableError as e:
            return self._store_failure(index, record, ROW_FAILURE_KEY, e)

        for field_key, value in lead.unique_keys.items():
            seen[field_key].add(value)

        return RowOutcome(
            index=index,
            row_number=record.row_number,
            status=RowStatus.ACCEPTED,
            lead_id=lead_id,
            lead=lead,
        )

    async def _call(self, operation, description: str):
        return await retry_async(
            operation,
            attempts=self.retry_attempts,
            backoff=self.retry_backoff,
            timeout=self.timeout,
            description=description,
        )

    def _rejected(self, index: int, record: RawRecord, failures: List[FieldFailure]) -> RowOutcome:
        return RowOutcome(
            index=index,
            row_number=record.row_number,
            status=RowStatus.REJECTED,
            failures=failures,
        )

    def _duplicate(
        self, index: int, record: RawRecord, field_key: str, scope: DuplicateScope
    ) -> RowOutcome:
        return RowOutcome(
            index=index,
            row_number=record.row_number,
            status=RowStatus.DUPLICATE,
            duplicate_field=field_key,
            duplicate_scope=scope,
        )

    def _store_failure(
        self, index: int, record: RawRecord, field_key: str, error: StoreUnavailableError
    ) -> RowOutcome:
        failure = FieldFailure(
            field_key=field_key,
            raw_value=None,
            reason=FailureReason.STORE_UNAVAILABLE,
            message=error.message,
        )
        return self._rejected(index, record, [failure])


def records_from_sheet(
    rows: Sequence[Sequence], has_header: bool = True, sheet_id: Optional[str] = None
) -> List[RawRecord]:
    """
    Spreadsheet rows to raw records.
    Row numbers are sheet row numbers (the header is row 1); wholly empty
    rows are dropped.
    """
    first_row = 2 if has_header else 1
    data_rows = rows[1:] if has_header else rows

    records = []
    for offset, cells in enumerate(data_rows):
        if all(is_empty(cell) for cell in cells):
            continue
        records.append(RawRecord.from_row(list(cells), row_number=first_row + offset, sheet_id=sheet_id))
    return records
