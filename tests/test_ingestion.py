"""Tests for batch ingestion: ordering, duplicates, store failures and cancellation."""
import asyncio
import uuid

import pytest

from lead_engine.core.exceptions import ConfigurationError, RegistryUnavailableError, StoreUnavailableError
from lead_engine.models.branch import Branch
from lead_engine.schemas.ingestion import (
    DuplicateScope, FailureReason, IngestionReport, RawRecord, RowStatus
)
from lead_engine.services.ingestion_service import BatchIngestor, ROW_FAILURE_KEY, records_from_sheet
from tests.conftest import make_mapping


def _rows(*rows):
    return [RawRecord.from_row(list(cells), row_number=i + 2) for i, cells in enumerate(rows)]


def _statuses(report):
    return [outcome.status for outcome in report.outcomes]


def test_repeated_email_in_batch_is_duplicate(ingestor, solar, lead_store):
    records = _rows(
        ["jan@example.com", "0612345678", "Jan"],
        ["JAN@example.com ", "0687654321", "Jan again"],
        ["piet@example.com", "0611111111", "Piet"],
    )

    report = asyncio.run(ingestor.ingest(records, "solar"))

    assert _statuses(report) == [RowStatus.ACCEPTED, RowStatus.DUPLICATE, RowStatus.ACCEPTED]
    assert report.outcomes[1].duplicate_field == "email"
    assert report.outcomes[1].duplicate_scope == DuplicateScope.BATCH
    assert (report.total, report.accepted, report.rejected, report.duplicates) == (3, 2, 0, 1)
    assert len(lead_store.leads) == 2


def test_rejected_rows_do_not_claim_unique_values(ingestor, solar):
    records = _rows(
        ["jan@example.com", "", "no phone"],
        ["jan@example.com", "0612345678", "Jan"],
    )

    report = asyncio.run(ingestor.ingest(records, "solar"))

    assert _statuses(report) == [RowStatus.REJECTED, RowStatus.ACCEPTED]
    failure = report.outcomes[0].failures[0]
    assert (failure.field_key, failure.reason) == ("phone", FailureReason.REQUIRED)


def test_persisted_email_is_a_store_duplicate(ingestor, solar):
    first = asyncio.run(ingestor.ingest(_rows(["jan@example.com", "0612345678"]), "solar"))
    second = asyncio.run(ingestor.ingest(_rows(["Jan@Example.com", "0699999999"]), "solar"))

    assert _statuses(first) == [RowStatus.ACCEPTED]
    assert _statuses(second) == [RowStatus.DUPLICATE]
    assert second.outcomes[0].duplicate_scope == DuplicateScope.STORE


def test_collision_at_persist_time_is_a_duplicate(ingestor, solar, lead_store):
    lead_store.race_keys[(solar.id, "email", "jan@example.com")] = uuid.uuid4()

    report = asyncio.run(ingestor.ingest(_rows(["jan@example.com", "0612345678"]), "solar"))

    assert _statuses(report) == [RowStatus.DUPLICATE]
    assert report.outcomes[0].duplicate_field == "email"
    assert not lead_store.leads


def test_report_preserves_input_order_and_row_numbers(ingestor, solar):
    records = _rows(
        ["bad", "0612345678"],
        ["a@example.com", "0612345678"],
        ["b@example.com", "1"],
    )

    report = asyncio.run(ingestor.ingest(records, "solar"))

    assert [o.index for o in report.outcomes] == [0, 1, 2]
    assert [o.row_number for o in report.outcomes] == [2, 3, 4]
    assert _statuses(report) == [RowStatus.REJECTED, RowStatus.ACCEPTED, RowStatus.REJECTED]
    assert report.outcomes[1].lead_id is not None
    assert report.finished_at is not None


def test_classification_is_stable_across_runs(schema_source, solar):
    records = _rows(
        ["a@example.com", "0612345678"],
        ["bad", "0612345678"],
        ["c@example.com", ""],
    )

    def run():
        from tests.conftest import InMemoryLeadStore
        from lead_engine.services.schema_registry import SchemaRegistry

        ingestor = BatchIngestor(SchemaRegistry(schema_source), InMemoryLeadStore(), retry_backoff=0)
        return _statuses(asyncio.run(ingestor.ingest(records, solar.id)))

    assert run() == run()


def test_unconfigured_branch_accepts_every_row(ingestor, schema_source, lead_store):
    branch = schema_source.add_branch(Branch(name="kozijnen", display_name="Kozijnen"))

    report = asyncio.run(ingestor.ingest(_rows(["x"], ["y", "z"]), "kozijnen"))

    assert _statuses(report) == [RowStatus.ACCEPTED, RowStatus.ACCEPTED]
    assert all(o.lead.fields == {} for o in report.outcomes)
    assert report.branch_id == branch.id
    assert len(lead_store.leads) == 2


def test_unknown_branch_raises_configuration_error(ingestor):
    with pytest.raises(ConfigurationError):
        asyncio.run(ingestor.ingest(_rows(["x"]), "does_not_exist"))


def test_inactive_branch_raises_configuration_error(ingestor, solar):
    solar.is_active = False

    with pytest.raises(ConfigurationError):
        asyncio.run(ingestor.ingest(_rows(["a@example.com", "0612345678"]), "solar"))


def test_unreachable_registry_raises_configuration_error(ingestor, schema_source, solar):
    schema_source.unavailable = True

    with pytest.raises(RegistryUnavailableError) as excinfo:
        asyncio.run(ingestor.ingest(_rows(["a@example.com", "0612345678"]), "solar"))

    assert isinstance(excinfo.value, ConfigurationError)
    assert isinstance(excinfo.value.__cause__, StoreUnavailableError)


def test_branch_can_be_addressed_by_id(ingestor, solar):
    report = asyncio.run(ingestor.ingest(_rows(["a@example.com", "0612345678"]), str(solar.id)))

    assert report.accepted == 1


def test_transient_check_failures_are_retried(ingestor, solar, lead_store):
    lead_store.check_failures = 2

    report = asyncio.run(ingestor.ingest(_rows(["a@example.com", "0612345678"]), "solar"))

    assert _statuses(report) == [RowStatus.ACCEPTED]
    assert lead_store.check_calls == 3


def test_exhausted_retries_reject_only_that_row(ingestor, solar, lead_store):
    lead_store.check_failures = 3
    records = _rows(["a@example.com", "0612345678"], ["b@example.com", "0612345678"])

    report = asyncio.run(ingestor.ingest(records, "solar"))

    assert _statuses(report) == [RowStatus.REJECTED, RowStatus.ACCEPTED]
    failure = report.outcomes[0].failures[0]
    assert failure.reason == FailureReason.STORE_UNAVAILABLE
    assert failure.field_key == "email"


def test_non_transient_persist_failure_is_not_retried(ingestor, solar, lead_store):
    lead_store.persist_failures = 1
    lead_store.persist_transient = False

    report = asyncio.run(ingestor.ingest(_rows(["a@example.com", "0612345678"]), "solar"))

    assert _statuses(report) == [RowStatus.REJECTED]
    assert report.outcomes[0].failures[0].field_key == ROW_FAILURE_KEY
    assert lead_store.persist_calls == 1


def test_failed_persist_does_not_claim_unique_value(ingestor, solar, lead_store):
    lead_store.persist_failures = 1
    lead_store.persist_transient = False
    records = _rows(["a@example.com", "0612345678"], ["a@example.com", "0612345678"])

    report = asyncio.run(ingestor.ingest(records, "solar"))

    assert _statuses(report) == [RowStatus.REJECTED, RowStatus.ACCEPTED]


def test_store_timeout_rejects_row(schema_source, solar, lead_store):
    from lead_engine.services.schema_registry import SchemaRegistry

    lead_store.hang_checks = True
    ingestor = BatchIngestor(SchemaRegistry(schema_source), lead_store,
                             retry_attempts=1, retry_backoff=0, timeout=0.01)

    report = asyncio.run(ingestor.ingest(_rows(["a@example.com", "0612345678"]), "solar"))

    assert report.outcomes[0].failures[0].reason == FailureReason.STORE_UNAVAILABLE
    assert not lead_store.leads


def test_cancellation_keeps_partial_report(schema_source, solar, lead_store):
    from lead_engine.services.schema_registry import SchemaRegistry

    ingestor = BatchIngestor(SchemaRegistry(schema_source), lead_store,
                             retry_attempts=1, retry_backoff=0, timeout=60)
    report = IngestionReport()
    records = _rows(["a@example.com", "0612345678"], ["b@example.com", "0612345678"])

    async def scenario():
        original_check = lead_store.check_unique

        async def check_unique(branch_id, field_key, value):
            # Second row blocks in its uniqueness check
            if value == "b@example.com":
                lead_store.hang_checks = True
            return await original_check(branch_id, field_key, value)

        lead_store.check_unique = check_unique
        task = asyncio.create_task(ingestor.ingest(records, "solar", report=report))
        while not lead_store.hang_checks:
            await asyncio.sleep(0)
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())

    assert report.cancelled
    assert _statuses(report) == [RowStatus.ACCEPTED]
    assert len(lead_store.leads) == 1
    assert report.finished_at is not None


def test_concurrent_batches_keep_separate_duplicate_state(ingestor, solar, lead_store):
    records = _rows(["a@example.com", "0612345678"])

    async def both():
        return await asyncio.gather(
            ingestor.ingest(records, "solar"),
            ingestor.ingest(_rows(["b@example.com", "0612345678"]), "solar"),
        )

    first, second = asyncio.run(both())

    assert _statuses(first) == [RowStatus.ACCEPTED]
    assert _statuses(second) == [RowStatus.ACCEPTED]


def test_sheet_rows_skip_header_and_empty_rows():
    rows = [["Email", "Phone"], ["a@example.com", "0612345678"], ["", None], ["b@example.com", "x"]]

    records = records_from_sheet(rows, has_header=True, sheet_id="sheet-1")

    assert [r.row_number for r in records] == [2, 4]
    assert records[0].origin_id == "sheet-1:2"


def test_headerless_sheet_rows_start_at_one():
    records = records_from_sheet([["a@example.com"]], has_header=False)

    assert records[0].row_number == 1


@pytest.mark.parametrize("unique_email", [False, True])
def test_write_that_lands_before_timeout_is_stored_once(schema_source, lead_store, unique_email):
    from lead_engine.services.schema_registry import SchemaRegistry

    branch = Branch(name="quotes", display_name="Quotes")
    schema_source.add_branch(branch, [
        make_mapping(branch.id, "email", column_index=0, field_type="email", is_unique=unique_email),
    ])
    # First persist stores the lead but its reply never arrives
    lead_store.stall_after_persist = 1
    ingestor = BatchIngestor(SchemaRegistry(schema_source), lead_store,
                             retry_attempts=3, retry_backoff=0, timeout=0.05)

    report = asyncio.run(ingestor.ingest(_rows(["a@example.com"]), "quotes"))

    assert _statuses(report) == [RowStatus.ACCEPTED]
    assert list(lead_store.leads) == [report.outcomes[0].lead_id]
    assert lead_store.persist_calls == 2


def test_phone_uniqueness_ignores_formatting(ingestor, schema_source, lead_store):
    branch = Branch(name="callbacks", display_name="Callbacks")
    schema_source.add_branch(branch, [
        make_mapping(branch.id, "phone", column_index=0, field_type="phone",
                     is_required=True, is_unique=True),
    ])

    report = asyncio.run(ingestor.ingest(_rows(["06-12345678"], ["0612345678"], ["06 1234 5679"]), "callbacks"))

    assert _statuses(report) == [RowStatus.ACCEPTED, RowStatus.DUPLICATE, RowStatus.ACCEPTED]
    assert report.outcomes[1].duplicate_field == "phone"
    assert report.outcomes[1].duplicate_scope == DuplicateScope.BATCH
    assert lead_store.leads[report.outcomes[0].lead_id].data["phone"] == "06-12345678"
