"""
Branch API routes - branch definitions and their field mappings.
"""
from typing import List

from fastapi import APIRouter, Depends, Query

from lead_engine.api.deps import get_registry
from lead_engine.config import settings
from lead_engine.schemas.branch import (
    BranchCreate, BranchResponse, DetectMappingsRequest, DetectedMapping,
    FieldMappingResponse, MappingsReplaceRequest
)
from lead_engine.services.column_detector import detect_column_mappings
from lead_engine.services.schema_registry import SchemaRegistry

router = APIRouter(prefix=f"{settings.API_PREFIX}/branches", tags=["branches"])


@router.get("/", response_model=List[BranchResponse])
async def list_branches(
    include_inactive: bool = Query(False),
    registry: SchemaRegistry = Depends(get_registry)
):
    """List branches."""
    return await registry.list_branches(active_only=not include_inactive)


@router.get("/configured", response_model=List[BranchResponse])
async def list_configured_branches(registry: SchemaRegistry = Depends(get_registry)):
    """Active branches that have at least one field mapping."""
    return await registry.list_configured_branches()


@router.post("/", response_model=BranchResponse, status_code=201)
async def create_branch(
    data: BranchCreate,
    registry: SchemaRegistry = Depends(get_registry)
):
    """Create a branch. The machine name is derived from the display name."""
    return await registry.create_branch(data)


@router.post("/detect-mappings", response_model=List[DetectedMapping])
async def detect_mappings(data: DetectMappingsRequest):
    """Suggest field mappings for a spreadsheet header row."""
    return detect_column_mappings(data.headers)


@router.get("/{branch}", response_model=BranchResponse)
async def get_branch(branch: str, registry: SchemaRegistry = Depends(get_registry)):
    """Get a branch by id or machine name."""
    return await registry.get_branch(branch)


@router.delete("/{branch}", response_model=BranchResponse)
async def deactivate_branch(branch: str, registry: SchemaRegistry = Depends(get_registry)):
    """Deactivate a branch. Mappings and leads are kept."""
    return await registry.deactivate_branch(branch)


@router.get("/{branch}/mappings", response_model=List[FieldMappingResponse])
async def get_mappings(branch: str, registry: SchemaRegistry = Depends(get_registry)):
    """Field mappings of a branch in presentation order."""
    found = await registry.get_branch(branch)
    return await registry.get_mappings(found.id)


@router.put("/{branch}/mappings", response_model=List[FieldMappingResponse])
async def replace_mappings(
    branch: str,
    data: MappingsReplaceRequest,
    registry: SchemaRegistry = Depends(get_registry)
):
    """Replace the whole mapping list of a branch."""
    return await registry.replace_mappings(branch, data.mappings)
