"""
REST API for running a refinement and listing the available modes.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from refiner.agent.orchestrator import ConfigurationError, RefinementOrchestrator
from refiner.models.schemas import RefineRequest, RefinementOutcome
from tracks.shared.modes import MODES

router = APIRouter()


def get_orchestrator() -> RefinementOrchestrator:
    """One orchestrator per request; caches never outlive a run."""
    return RefinementOrchestrator()


@router.get("/modes")
async def list_modes():
    """Budget defaults for every named mode."""
    return {name: config.to_dict() for name, config in MODES.items()}


@router.post("/refine", response_model=RefinementOutcome)
async def refine(
    request: RefineRequest,
    orchestrator: RefinementOrchestrator = Depends(get_orchestrator),
):
    """
    Refine a prompt under the chosen mode's budget.

    Runs to completion before responding. Oracle failures never fail the
    request; they are reported in the returned trace.
    """
    try:
        return await orchestrator.run(request)
    except ConfigurationError as e:
        raise HTTPException(status_code=422, detail=e.errors)
