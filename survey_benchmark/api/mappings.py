"""
FastAPI router module for specialty mapping management.

Key Endpoints:
- GET    /mappings                       - List specialty mappings
- POST   /mappings                       - Create a mapping
- PUT    /mappings/{mapping_id}          - Rename / replace sources
- DELETE /mappings/{mapping_id}          - Delete a mapping
- GET    /mappings/unmapped              - Survey labels no mapping covers
- GET    /mappings/suggestions           - Ranked candidates for one label
- GET    /mappings/suggestion-groups     - Unmapped labels grouped by similarity
- POST   /mappings/auto-map              - Auto-map every unmapped label
- POST   /mappings/corrections           - Manually map a label
- GET    /mappings/learned               - Learned corrections
- DELETE /mappings/learned/{name}        - Forget a learned correction
- POST   /mappings/learned/reload        - Reload learned corrections from the store

Every successful edit invalidates the benchmark cache. Auto-mapping never
fails as a whole for per-item persistence errors; those are listed in the
report's failures.
"""

import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Body, HTTPException, Query
from pydantic import BaseModel, Field

from survey_benchmark.core.dependencies import MappingServiceDep
from survey_benchmark.models import (
    AutoMappingConfig,
    AutoMappingReport,
    MappingSuggestionGroup,
    MatchSuggestion,
    SourceSpecialty,
    SpecialtyMapping,
    UnmappedSpecialty,
)
from survey_benchmark.services.mapping_service import DuplicateMappingError, MappingNotFoundError


# =============================================================================
# Module Configuration
# =============================================================================

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/mappings", tags=["mappings"])


# =============================================================================
# Request Models
# =============================================================================


class MappingCreate(BaseModel):
    standardizedName: str = Field(..., min_length=1)
    sourceSpecialties: List[SourceSpecialty] = Field(default_factory=list)


class MappingUpdate(BaseModel):
    standardizedName: Optional[str] = Field(default=None, min_length=1)
    sourceSpecialties: Optional[List[SourceSpecialty]] = None


class SpecialtyCorrection(BaseModel):
    """Manual mapping of one survey label."""
    specialty: str = Field(..., min_length=1)
    surveySource: str = ""
    standardizedName: str = Field(..., min_length=1)


# =============================================================================
# Mapping CRUD
# =============================================================================


@router.get("", response_model=List[SpecialtyMapping])
async def list_mappings(service: MappingServiceDep) -> List[SpecialtyMapping]:
    try:
        return await service.list_mappings()
    except Exception as e:
        logger.exception("Error listing specialty mappings")
        raise HTTPException(status_code=500, detail=f"Failed to list mappings: {str(e)}")


@router.post("", response_model=SpecialtyMapping, status_code=201)
async def create_mapping(
    service: MappingServiceDep,
    payload: MappingCreate = Body(...),
) -> SpecialtyMapping:
    try:
        return await service.create_mapping(payload.standardizedName, payload.sourceSpecialties)
    except DuplicateMappingError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.exception("Error creating specialty mapping")
        raise HTTPException(status_code=500, detail=f"Failed to create mapping: {str(e)}")


@router.put("/{mapping_id}", response_model=SpecialtyMapping)
async def update_mapping(
    mapping_id: str,
    service: MappingServiceDep,
    payload: MappingUpdate = Body(...),
) -> SpecialtyMapping:
    try:
        return await service.update_mapping(
            mapping_id,
            standardized_name=payload.standardizedName,
            source_specialties=payload.sourceSpecialties,
        )
    except MappingNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DuplicateMappingError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.exception(f"Error updating specialty mapping {mapping_id}")
        raise HTTPException(status_code=500, detail=f"Failed to update mapping: {str(e)}")


@router.delete("/{mapping_id}")
async def delete_mapping(mapping_id: str, service: MappingServiceDep) -> dict:
    try:
        await service.delete_mapping(mapping_id)
        return {"success": True}
    except MappingNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.exception(f"Error deleting specialty mapping {mapping_id}")
        raise HTTPException(status_code=500, detail=f"Failed to delete mapping: {str(e)}")


# =============================================================================
# Discovery & Suggestions
# =============================================================================


@router.get("/unmapped", response_model=List[UnmappedSpecialty])
async def get_unmapped_specialties(service: MappingServiceDep) -> List[UnmappedSpecialty]:
    try:
        return await service.get_unmapped_specialties()
    except Exception as e:
        logger.exception("Error discovering unmapped specialties")
        raise HTTPException(status_code=500, detail=f"Failed to load unmapped specialties: {str(e)}")


@router.get("/suggestions", response_model=List[MatchSuggestion])
async def suggest_matches(
    service: MappingServiceDep,
    specialty: str = Query(..., min_length=1),
) -> List[MatchSuggestion]:
    try:
        return await service.suggest_matches(specialty)
    except Exception as e:
        logger.exception(f"Error suggesting matches for '{specialty}'")
        raise HTTPException(status_code=500, detail=f"Failed to suggest matches: {str(e)}")


@router.get("/suggestion-groups", response_model=List[MappingSuggestionGroup])
async def generate_mapping_suggestions(
    service: MappingServiceDep,
    confidenceThreshold: float = Query(default=0.8, ge=0.0, le=1.0),
    useFuzzyMatching: bool = Query(default=True),
    useExistingMappings: bool = Query(default=True),
) -> List[MappingSuggestionGroup]:
    config = AutoMappingConfig(
        confidenceThreshold=confidenceThreshold,
        useFuzzyMatching=useFuzzyMatching,
        useExistingMappings=useExistingMappings,
    )
    try:
        return await service.generate_mapping_suggestions(config)
    except Exception as e:
        logger.exception("Error generating mapping suggestions")
        raise HTTPException(status_code=500, detail=f"Failed to generate suggestions: {str(e)}")


# =============================================================================
# Auto-Mapping & Corrections
# =============================================================================


@router.post("/auto-map", response_model=AutoMappingReport)
async def auto_map_specialties(
    service: MappingServiceDep,
    config: Optional[AutoMappingConfig] = Body(default=None),
) -> AutoMappingReport:
    """
    Map every unmapped specialty the matcher resolves above the threshold.
    """
    try:
        return await service.auto_map_specialties(config)
    except Exception as e:
        logger.exception("Error auto-mapping specialties")
        raise HTTPException(status_code=500, detail=f"Failed to auto-map specialties: {str(e)}")


@router.post("/corrections", response_model=SpecialtyMapping)
async def correct_specialty(
    service: MappingServiceDep,
    correction: SpecialtyCorrection = Body(...),
) -> SpecialtyMapping:
    try:
        return await service.correct_specialty(
            correction.specialty,
            correction.surveySource,
            correction.standardizedName,
        )
    except Exception as e:
        logger.exception(f"Error correcting specialty '{correction.specialty}'")
        raise HTTPException(status_code=500, detail=f"Failed to save correction: {str(e)}")


# =============================================================================
# Learned Mappings
# =============================================================================


@router.get("/learned", response_model=Dict[str, str])
async def get_learned_mappings(service: MappingServiceDep) -> Dict[str, str]:
    return service.get_learned_mappings()


@router.delete("/learned/{original_name}")
async def remove_learned_mapping(original_name: str, service: MappingServiceDep) -> dict:
    try:
        removed = await service.remove_learned_mapping(original_name)
    except Exception as e:
        logger.exception(f"Error removing learned mapping '{original_name}'")
        raise HTTPException(status_code=500, detail=f"Failed to remove learned mapping: {str(e)}")

    if not removed:
        raise HTTPException(status_code=404, detail=f"No learned mapping for '{original_name}'")
    return {"success": True}


@router.post("/learned/reload")
async def reload_learned_mappings(service: MappingServiceDep) -> dict:
    """Re-read learned corrections from the survey store."""
    try:
        count = await service.load_learned_mappings()
    except Exception as e:
        logger.exception("Error reloading learned mappings")
        raise HTTPException(status_code=500, detail=f"Failed to reload learned mappings: {str(e)}")
    return {"success": True, "count": count}
