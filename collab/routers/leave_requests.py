"""
Leave request endpoints.

Transitions answer with the updated request plus the names of any side
effects that failed; the transition itself has already been committed.
"""
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from collab.core.config import settings
from collab.database import get_db
from collab.models.leave_request import LeaveStatus
from collab.routers.auth_deps import get_current_actor
from collab.schemas.common import Page
from collab.schemas.leave import (
    LeaveRequestCreate,
    LeaveDecision,
    LeaveRequestResponse,
    LeaveRequestSummary,
    LeaveBalanceResponse,
)
from collab.services.authorization import Actor
from collab.services.leave_balance import LeaveBalanceService
from collab.services.leave_service import LeaveService
from collab.services.side_effects import TransitionResult

router = APIRouter(tags=["Leave Requests"])


class LeaveTransitionResponse(BaseModel):
    data: LeaveRequestResponse
    failed_side_effects: List[str] = []


def _transition_response(result: TransitionResult) -> dict:
    return {
        "data": result.primary_result,
        "failed_side_effects": [o.name for o in result.failed_side_effects],
    }


@router.post("/leave/requests", response_model=LeaveTransitionResponse, status_code=status.HTTP_201_CREATED)
def create_leave_request(
    data: LeaveRequestCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return _transition_response(LeaveService(db).create_leave_request(actor, data))


@router.post("/leave/requests/{request_id}/approve", response_model=LeaveTransitionResponse)
def approve_leave_request(
    request_id: str,
    background_tasks: BackgroundTasks,
    decision: Optional[LeaveDecision] = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    service = LeaveService(db, background_tasks=background_tasks)
    result = service.approve_leave_request(actor, request_id, notes=decision.notes if decision else None)
    return _transition_response(result)


@router.post("/leave/requests/{request_id}/reject", response_model=LeaveTransitionResponse)
def reject_leave_request(
    request_id: str,
    decision: Optional[LeaveDecision] = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    result = LeaveService(db).reject_leave_request(actor, request_id, notes=decision.notes if decision else None)
    return _transition_response(result)


@router.post("/leave/requests/{request_id}/cancel", response_model=LeaveTransitionResponse)
def cancel_leave_request(
    request_id: str,
    decision: Optional[LeaveDecision] = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    result = LeaveService(db).cancel_leave_request(actor, request_id, notes=decision.notes if decision else None)
    return _transition_response(result)


@router.get("/workspaces/{workspace}/leave/requests/mine", response_model=List[LeaveRequestResponse])
def get_my_leave_requests(
    workspace: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return LeaveService(db).get_user_leave_requests(actor, workspace)


@router.get("/workspaces/{workspace}/leave/requests", response_model=Page[LeaveRequestResponse])
def get_workspace_leave_requests(
    workspace: str,
    take: int = Query(settings.leave.default_page_size),
    skip: int = Query(0),
    status: Optional[LeaveStatus] = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Manager queue: pending first, newest first within a status."""
    return LeaveService(db).get_paginated_workspace_leave_requests(
        actor, workspace, take=take, skip=skip, status=status
    )


@router.get("/workspaces/{workspace}/leave/requests/summary", response_model=LeaveRequestSummary)
def get_leave_requests_summary(
    workspace: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return LeaveService(db).get_workspace_leave_requests_summary(actor, workspace)


@router.get("/workspaces/{workspace}/leave/balances", response_model=List[LeaveBalanceResponse])
def get_my_leave_balances(
    workspace: str,
    year: Optional[int] = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return LeaveBalanceService(db).get_user_balances(actor, workspace, year=year)
