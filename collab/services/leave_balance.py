"""
Leave balance calculation.

Balances are a projection over approved requests, never a stored ledger:
``calculate_leave_balance`` is a pure function of the policy, the user's
approved requests and the evaluation date. ``LeaveBalanceService`` feeds it
from the database and keeps the ``leave_balances`` snapshot table current.

Algorithm per tracking (calendar) year:

* accrued  - by accrual type: a constant (DOES_NOT_ACCRUE), a yearly grant
  (FIXED, optionally pro-rated from an employment start date), or a rate
  times hours worked (HOURLY, REGULAR_WORKING_HOURS).
* used     - approved FULL_DAY requests count their inclusive calendar days
  inside the year; HALF_DAY requests count half a day. HOURS policies
  convert days with ``hours_per_day``.
* rollover - the previous year's unused balance filtered through the
  policy's rollover type.
* balance  - max(0, accrued + rollover - used).

Years are walked forward from ``first_year`` so rollover is derived, not
remembered.
"""
import logging
from dataclasses import dataclass, asdict
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable, List, Mapping, Optional

from sqlalchemy.orm import Session

from collab.core.config import settings
from collab.models.leave_balance import LeaveBalance
from collab.models.leave_policy import LeavePolicy, AccrualType, RolloverType, TrackUnit
from collab.models.leave_request import LeaveRequest, LeaveStatus, LeaveDuration
from collab.services.authorization import Actor, AuthorizationService
from collab.services.base import BaseService

logger = logging.getLogger(__name__)

_PRECISION = 4


@dataclass(frozen=True)
class BalanceResult:
    year: int
    total_accrued: float
    total_used: float
    rollover: float
    balance: float

    def to_dict(self) -> dict:
        return asdict(self)


def _year_bounds(year: int):
    return date(year, 1, 1), date(year, 12, 31)


def _days_in_year(year: int) -> int:
    start, end = _year_bounds(year)
    return (end - start).days + 1


def _count_weekdays(start: date, end: date) -> int:
    if end < start:
        return 0
    total_days = (end - start).days + 1
    full_weeks, remainder = divmod(total_days, 7)
    weekdays = full_weeks * 5
    for offset in range(remainder):
        if (start + timedelta(days=full_weeks * 7 + offset)).weekday() < 5:
            weekdays += 1
    return weekdays


def request_usage_days(request: LeaveRequest, year: int) -> float:
    """Day-equivalent a single request consumes within ``year``."""
    year_start, year_end = _year_bounds(year)
    if request.duration == LeaveDuration.HALF_DAY.value:
        return 0.5 if year_start <= request.start_date <= year_end else 0.0
    overlap_start = max(request.start_date, year_start)
    overlap_end = min(request.end_date, year_end)
    if overlap_end < overlap_start:
        return 0.0
    return float((overlap_end - overlap_start).days + 1)


def calculate_used(policy: LeavePolicy, approved_requests: Iterable[LeaveRequest], year: int,
                   hours_per_day: float) -> float:
    days = sum(
        request_usage_days(r, year)
        for r in approved_requests
        if r.status == LeaveStatus.APPROVED.value
    )
    if policy.track_in == TrackUnit.HOURS.value:
        return days * hours_per_day
    return days


def calculate_accrued(
    policy: LeavePolicy,
    year: int,
    as_of: date,
    hours_worked: Optional[Mapping[int, float]] = None,
    employment_start: Optional[date] = None,
    hours_per_day: float = 8.0,
) -> float:
    year_start, year_end = _year_bounds(year)
    if as_of < year_start:
        return 0.0
    if employment_start and employment_start > year_end:
        return 0.0

    accrual_type = policy.accrual_type
    amount = policy.accrual_amount or 0.0
    rate = policy.accrual_rate or 0.0

    if accrual_type == AccrualType.DOES_NOT_ACCRUE.value:
        return amount

    if accrual_type == AccrualType.FIXED.value:
        if employment_start and employment_start > year_start:
            remaining = (year_end - employment_start).days + 1
            return amount * remaining / _days_in_year(year)
        return amount

    if accrual_type == AccrualType.HOURLY.value:
        return rate * (hours_worked or {}).get(year, 0.0)

    if accrual_type == AccrualType.REGULAR_WORKING_HOURS.value:
        if hours_worked is not None and year in hours_worked:
            return rate * hours_worked[year]
        window_start = max(year_start, employment_start) if employment_start else year_start
        window_end = min(as_of, year_end)
        return rate * _count_weekdays(window_start, window_end) * hours_per_day

    logger.warning("Unknown accrual type, treating as non-accruing", extra={"accrual_type": accrual_type})
    return 0.0


def apply_rollover(policy: LeavePolicy, unused: float) -> float:
    unused = max(0.0, unused)
    rollover_type = policy.rollover_type or RolloverType.NONE.value
    if rollover_type == RolloverType.ENTIRE_BALANCE.value:
        return unused
    if rollover_type == RolloverType.PARTIAL_BALANCE.value:
        return min(unused, policy.rollover_amount or 0.0)
    return 0.0


def calculate_leave_balance(
    policy: LeavePolicy,
    approved_requests: Iterable[LeaveRequest],
    year: int,
    as_of: date,
    first_year: Optional[int] = None,
    hours_worked: Optional[Mapping[int, float]] = None,
    employment_start: Optional[date] = None,
    hours_per_day: Optional[float] = None,
) -> BalanceResult:
    """
    Balance for one policy and year. Pure: no I/O, no hidden state, the
    same inputs always yield the same result.
    """
    if hours_per_day is None:
        hours_per_day = settings.leave.working_hours_per_day
    requests: List[LeaveRequest] = list(approved_requests)
    start_year = min(first_year, year) if first_year is not None else year

    rollover = 0.0
    result = None
    for current in range(start_year, year + 1):
        accrued = calculate_accrued(policy, current, as_of, hours_worked, employment_start, hours_per_day)
        used = calculate_used(policy, requests, current, hours_per_day)
        entitlement = accrued + rollover
        if policy.max_balance is not None:
            entitlement = min(entitlement, policy.max_balance)
        deducted = used if policy.deducts_leave else 0.0
        result = BalanceResult(
            year=current,
            total_accrued=round(accrued, _PRECISION),
            total_used=round(used, _PRECISION),
            rollover=round(rollover, _PRECISION),
            balance=round(max(0.0, entitlement - deducted), _PRECISION),
        )
        rollover = apply_rollover(policy, entitlement - deducted)
    return result


class LeaveBalanceService(BaseService):
    """Database-backed wrapper around ``calculate_leave_balance``."""

    def _approved_requests(self, user_id: str, policy_id: str) -> List[LeaveRequest]:
        return (
            self.db.query(LeaveRequest)
            .filter(
                LeaveRequest.user_id == user_id,
                LeaveRequest.policy_id == policy_id,
                LeaveRequest.status == LeaveStatus.APPROVED.value,
            )
            .all()
        )

    @staticmethod
    def _first_year(policy: LeavePolicy, requests: List[LeaveRequest], year: int) -> int:
        candidates = [year]
        if policy.created_at is not None:
            candidates.append(policy.created_at.year)
        candidates.extend(r.start_date.year for r in requests)
        return min(candidates)

    def get_balance(self, user_id: str, policy: LeavePolicy, year: int,
                    as_of: Optional[date] = None) -> BalanceResult:
        as_of = as_of or date.today()
        requests = self._approved_requests(user_id, policy.id)
        return calculate_leave_balance(
            policy,
            requests,
            year,
            as_of,
            first_year=self._first_year(policy, requests, year),
        )

    def recalculate_balance(self, user_id: str, policy: LeavePolicy, year: int,
                            as_of: Optional[date] = None) -> BalanceResult:
        """Recompute from scratch and upsert the snapshot row."""
        result = self.get_balance(user_id, policy, year, as_of)
        snapshot = (
            self.db.query(LeaveBalance)
            .filter(
                LeaveBalance.user_id == user_id,
                LeaveBalance.policy_id == policy.id,
                LeaveBalance.year == year,
            )
            .first()
        )
        if snapshot is None:
            snapshot = LeaveBalance(user_id=user_id, policy_id=policy.id, year=year)
            self.db.add(snapshot)
        snapshot.total_accrued = result.total_accrued
        snapshot.total_used = result.total_used
        snapshot.rollover = result.rollover
        snapshot.balance = result.balance
        snapshot.last_accrued_at = datetime.now(timezone.utc)
        self.commit()
        self.log_info(
            "Leave balance recalculated",
            user_id=user_id,
            policy_id=policy.id,
            year=year,
            balance=result.balance,
        )
        return result

    def get_user_balances(self, actor: Actor, workspace_slug_or_id: str,
                          year: Optional[int] = None) -> List[Dict]:
        """Caller's balances across the workspace's visible policies."""
        gate = AuthorizationService(self.db)
        workspace_id = gate.resolve_workspace_id(workspace_slug_or_id)
        gate.require_workspace_access(actor, workspace_id)

        year = year or date.today().year
        policies = (
            self.db.query(LeavePolicy)
            .filter(LeavePolicy.workspace_id == workspace_id, LeavePolicy.is_hidden.is_(False))
            .order_by(LeavePolicy.name.asc())
            .all()
        )
        balances = []
        for policy in policies:
            result = self.get_balance(actor.user_id, policy, year)
            balances.append({
                "policy_id": policy.id,
                "policy_name": policy.name,
                "track_in": policy.track_in,
                **result.to_dict(),
            })
        return balances
