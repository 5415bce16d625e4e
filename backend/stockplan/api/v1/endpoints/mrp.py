"""
MRP (Material Requirements Planning) API Endpoints

Endpoints for:
- Running MRP calculations
- Viewing runs and their netted requirements
- Applying a run (shortages -> draft purchase requisitions)
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from stockplan.api.v1.deps import get_current_actor, get_page_params
from stockplan.db.session import get_db
from stockplan.exceptions import NotFoundError
from stockplan.schemas.common import ListResponse, PageParams
from stockplan.schemas.mrp import MRPResultResponse, MRPRunRequest, MRPRunResponse
from stockplan.services.mrp import MRPService

router = APIRouter(prefix="/mrp", tags=["MRP"])


# ============================================================================
# MRP Run Endpoints
# ============================================================================

@router.post("/runs", response_model=MRPRunResponse, status_code=201)
def run_mrp(
    request: MRPRunRequest,
    actor: str = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """
    Run MRP calculation.

    This will:
    1. Collect open sales-order demand per product
    2. Explode released BOMs to gross material requirements
    3. Net requirements against on-hand, in-transit and in-production supply
    4. Store one result per material on the run

    A failing run is still recorded (status FAILED) and the error is returned.
    """
    run = MRPService(db).run_mrp(
        product_id=request.product_id,
        planning_horizon_days=request.planning_horizon_days,
        user_id=actor,
    )
    return run


@router.get("/runs", response_model=ListResponse[MRPRunResponse])
def list_runs(
    status: Optional[str] = Query(None, description="Filter by run status"),
    pagination: PageParams = Depends(get_page_params),
    db: Session = Depends(get_db),
):
    runs, total = MRPService(db).list_runs(
        page=pagination.page, page_size=pagination.page_size, status=status
    )
    return ListResponse.build(
        [MRPRunResponse.model_validate(r) for r in runs],
        total, pagination.page, pagination.page_size,
    )


@router.get("/runs/latest", response_model=MRPRunResponse)
def get_latest_run(db: Session = Depends(get_db)):
    run = MRPService(db).get_latest_run()
    if run is None:
        raise NotFoundError("MRPRun")
    return run


@router.get("/runs/{run_id}", response_model=MRPRunResponse)
def get_run(run_id: int, db: Session = Depends(get_db)):
    return MRPService(db).get_run(run_id)


@router.get("/runs/{run_id}/results", response_model=List[MRPResultResponse])
def get_run_results(
    run_id: int,
    action_type: Optional[str] = Query(None, description="PURCHASE or PRODUCE"),
    shortages_only: bool = Query(False, description="Only materials with a net requirement"),
    db: Session = Depends(get_db),
):
    return MRPService(db).get_results(
        run_id, action_type=action_type, shortages_only=shortages_only
    )


@router.post("/runs/{run_id}/apply", response_model=MRPRunResponse)
def apply_run(
    run_id: int,
    actor: str = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """
    Convert the run's unapplied PURCHASE shortages into draft purchase
    requisitions. Only a COMPLETED run can be applied, and only once.
    """
    return MRPService(db).apply_run(run_id, user_id=actor)
