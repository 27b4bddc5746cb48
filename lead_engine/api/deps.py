"""
API dependencies - shared across all routes.
"""
from typing import Optional

from fastapi import Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from lead_engine.database import get_session
from lead_engine.config import settings
from lead_engine.services.ingestion_service import BatchIngestor
from lead_engine.services.integrations.base import LeadFormSource, LeadStore
from lead_engine.services.integrations.store import SqlLeadFormSource, SqlLeadStore, SqlSchemaSource
from lead_engine.services.projection_service import ProjectionService
from lead_engine.services.schema_registry import MappingCache, SchemaRegistry
from lead_engine.services.webhook_service import FormLeadRouter

# Process-wide, only when enabled
mapping_cache: Optional[MappingCache] = MappingCache() if settings.MAPPING_CACHE_ENABLED else None


def get_registry(session: AsyncSession = Depends(get_session)) -> SchemaRegistry:
    return SchemaRegistry(SqlSchemaSource(session), cache=mapping_cache)


def get_lead_store(session: AsyncSession = Depends(get_session)) -> LeadStore:
    return SqlLeadStore(session)


def get_lead_form_source(session: AsyncSession = Depends(get_session)) -> LeadFormSource:
    return SqlLeadFormSource(session)


def get_ingestor(
    registry: SchemaRegistry = Depends(get_registry),
    store: LeadStore = Depends(get_lead_store),
) -> BatchIngestor:
    return BatchIngestor(
        registry,
        store,
        retry_attempts=settings.STORE_RETRY_ATTEMPTS,
        retry_backoff=settings.STORE_RETRY_BACKOFF_SECONDS,
        timeout=settings.STORE_TIMEOUT_SECONDS,
    )


def get_projection_service(
    registry: SchemaRegistry = Depends(get_registry),
    store: LeadStore = Depends(get_lead_store),
) -> ProjectionService:
    return ProjectionService(registry, store)


def get_form_router(
    forms: LeadFormSource = Depends(get_lead_form_source),
    ingestor: BatchIngestor = Depends(get_ingestor),
) -> FormLeadRouter:
    return FormLeadRouter(forms, ingestor)
