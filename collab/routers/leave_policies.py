from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from collab.core.config import settings
from collab.database import get_db
from collab.routers.auth_deps import get_current_actor
from collab.schemas.common import Page, MessageResponse
from collab.schemas.leave import (
    LeavePolicyCreate,
    LeavePolicyUpdate,
    LeavePolicyResponse,
    LeavePolicySummary,
)
from collab.services.authorization import Actor, AuthorizationService
from collab.services.leave_policy_service import LeavePolicyService

router = APIRouter(tags=["Leave Policies"])


@router.get("/workspaces/{workspace}/leave/policies", response_model=List[LeavePolicySummary])
def get_leave_policies(
    workspace: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Visible policies of a workspace, for request forms."""
    workspace_id = AuthorizationService(db).resolve_workspace_id(workspace)
    return LeavePolicyService(db).get_leave_policies(actor, workspace_id)


@router.get("/workspaces/{workspace}/leave/policies/paginated", response_model=Page[LeavePolicyResponse])
def list_leave_policies(
    workspace: str,
    take: int = Query(settings.leave.default_page_size),
    skip: int = Query(0),
    search: Optional[str] = None,
    group: Optional[str] = None,
    include_hidden: bool = False,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return LeavePolicyService(db).list_policies(
        actor, workspace, take=take, skip=skip, search=search, group=group, include_hidden=include_hidden
    )


@router.post("/leave/policies", response_model=LeavePolicyResponse, status_code=status.HTTP_201_CREATED)
def create_leave_policy(
    data: LeavePolicyCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return LeavePolicyService(db).create_policy(actor, data)


@router.get("/leave/policies/{policy_id}", response_model=LeavePolicyResponse)
def get_leave_policy(
    policy_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return LeavePolicyService(db).get_policy(actor, policy_id)


@router.put("/leave/policies/{policy_id}", response_model=LeavePolicyResponse)
def update_leave_policy(
    policy_id: str,
    data: LeavePolicyUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return LeavePolicyService(db).update_policy(actor, policy_id, data)


@router.delete("/leave/policies/{policy_id}", response_model=MessageResponse)
def delete_leave_policy(
    policy_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    LeavePolicyService(db).delete_policy(actor, policy_id)
    return {"message": "Leave policy deleted"}
