"""Logging coverage: run summaries and warnings surface without stopping ingestion."""
import asyncio

from lead_engine.models.branch import Branch
from lead_engine.schemas.ingestion import RawRecord


def test_ingest_logs_summary(ingestor, solar, caplog):
    """A finished run should log its counts."""

    caplog.set_level("INFO")
    asyncio.run(ingestor.ingest([RawRecord.from_row(["a@example.com", "0612345678"])], "solar"))

    assert any("1 accepted, 0 rejected, 0 duplicates" in message for message in caplog.messages)


def test_unconfigured_branch_logs_warning(ingestor, schema_source, caplog):
    """Ingesting into a branch without mappings should warn, not fail."""

    schema_source.add_branch(Branch(name="empty", display_name="Empty"))
    caplog.set_level("WARNING")

    report = asyncio.run(ingestor.ingest([RawRecord.from_row(["x"])], "empty"))

    assert report.accepted == 1
    assert "no field mappings" in caplog.text
