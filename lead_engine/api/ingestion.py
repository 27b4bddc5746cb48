"""
Ingestion API routes - batch ingestion of raw records into a branch.
"""
from fastapi import APIRouter, Depends

from lead_engine.api.deps import get_ingestor
from lead_engine.config import settings
from lead_engine.schemas.common import ErrorResponse
from lead_engine.schemas.ingestion import IngestBatchRequest, IngestionReport, SheetIngestRequest
from lead_engine.services.ingestion_service import BatchIngestor, records_from_sheet

router = APIRouter(
    prefix=f"{settings.API_PREFIX}/branches",
    tags=["ingestion"],
    responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)


@router.post("/{branch}/ingest", response_model=IngestionReport)
async def ingest_batch(
    branch: str,
    data: IngestBatchRequest,
    ingestor: BatchIngestor = Depends(get_ingestor)
):
    """Map, validate, de-duplicate and persist a batch of records."""
    return await ingestor.ingest(data.records, branch)


@router.post("/{branch}/ingest/sheet", response_model=IngestionReport)
async def ingest_sheet(
    branch: str,
    data: SheetIngestRequest,
    ingestor: BatchIngestor = Depends(get_ingestor)
):
    """Ingest spreadsheet rows; the first row is skipped as header unless has_header is false."""
    records = records_from_sheet(data.rows, data.has_header, data.sheet_id)
    return await ingestor.ingest(records, branch)
