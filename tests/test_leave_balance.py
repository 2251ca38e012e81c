import pytest
from datetime import date

from collab.models.leave_balance import LeaveBalance
from collab.models.leave_policy import LeavePolicy, AccrualType, TrackUnit, RolloverType
from collab.models.leave_request import LeaveRequest, LeaveStatus, LeaveDuration
from collab.services.leave_balance import (
    LeaveBalanceService,
    apply_rollover,
    calculate_leave_balance,
    request_usage_days,
)

AS_OF = date(2026, 6, 1)
THIS_YEAR = date.today().year


def _policy(**overrides):
    values = dict(
        name="Annual Leave",
        track_in=TrackUnit.DAYS.value,
        accrual_type=AccrualType.FIXED.value,
        accrual_amount=25.0,
        accrual_rate=0.0,
        deducts_leave=True,
        max_balance=None,
        rollover_type=RolloverType.NONE.value,
        rollover_amount=None,
    )
    values.update(overrides)
    return LeavePolicy(**values)


def _request(start, end, duration=LeaveDuration.FULL_DAY, status=LeaveStatus.APPROVED):
    return LeaveRequest(start_date=start, end_date=end, duration=duration.value, status=status.value)


def test_fixed_allowance_minus_approved_week():
    result = calculate_leave_balance(_policy(), [_request(date(2026, 3, 2), date(2026, 3, 6))], 2026, AS_OF)
    assert result.total_accrued == 25.0
    assert result.total_used == 5.0
    assert result.rollover == 0.0
    assert result.balance == 20.0

def test_half_day_counts_half():
    result = calculate_leave_balance(
        _policy(), [_request(date(2026, 4, 1), date(2026, 4, 1), LeaveDuration.HALF_DAY)], 2026, AS_OF
    )
    assert result.total_used == 0.5
    assert result.balance == 24.5

def test_non_approved_requests_are_ignored():
    requests = [
        _request(date(2026, 3, 2), date(2026, 3, 6), status=LeaveStatus.REJECTED),
        _request(date(2026, 5, 4), date(2026, 5, 5), status=LeaveStatus.PENDING),
        _request(date(2026, 7, 1), date(2026, 7, 1), status=LeaveStatus.CANCELED),
    ]
    result = calculate_leave_balance(_policy(), requests, 2026, AS_OF)
    assert result.total_used == 0.0
    assert result.balance == 25.0

def test_request_spanning_new_year_is_clipped():
    leave = _request(date(2025, 12, 30), date(2026, 1, 2))
    assert request_usage_days(leave, 2025) == 2.0
    assert request_usage_days(leave, 2026) == 2.0
    assert request_usage_days(leave, 2027) == 0.0

def test_hours_policy_converts_days():
    policy = _policy(track_in=TrackUnit.HOURS.value, accrual_amount=200.0)
    requests = [
        _request(date(2026, 3, 2), date(2026, 3, 3)),
        _request(date(2026, 3, 9), date(2026, 3, 9), LeaveDuration.HALF_DAY),
    ]
    result = calculate_leave_balance(policy, requests, 2026, AS_OF, hours_per_day=8.0)
    assert result.total_used == 20.0
    assert result.balance == 180.0

def test_policy_that_does_not_deduct_keeps_full_balance():
    result = calculate_leave_balance(
        _policy(deducts_leave=False), [_request(date(2026, 3, 2), date(2026, 3, 6))], 2026, AS_OF
    )
    assert result.total_used == 5.0
    assert result.balance == 25.0

def test_balance_never_negative():
    result = calculate_leave_balance(
        _policy(accrual_amount=3.0), [_request(date(2026, 3, 2), date(2026, 3, 6))], 2026, AS_OF
    )
    assert result.balance == 0.0

@pytest.mark.parametrize("rollover_type,rollover_amount,expected", [
    (RolloverType.NONE.value, None, 25.0),
    (RolloverType.ENTIRE_BALANCE.value, None, 45.0),
    (RolloverType.PARTIAL_BALANCE.value, 5.0, 30.0),
])
def test_rollover_from_previous_year(rollover_type, rollover_amount, expected):
    policy = _policy(rollover_type=rollover_type, rollover_amount=rollover_amount)
    requests = [_request(date(2025, 8, 4), date(2025, 8, 8))]
    result = calculate_leave_balance(policy, requests, 2026, AS_OF, first_year=2025)
    assert result.year == 2026
    assert result.balance == expected

def test_max_balance_caps_entitlement():
    policy = _policy(rollover_type=RolloverType.ENTIRE_BALANCE.value, max_balance=30.0)
    result = calculate_leave_balance(policy, [], 2026, AS_OF, first_year=2025)
    assert result.rollover == 25.0
    assert result.balance == 30.0

def test_partial_rollover_never_exceeds_unused():
    policy = _policy(rollover_type=RolloverType.PARTIAL_BALANCE.value, rollover_amount=10.0)
    assert apply_rollover(policy, 4.0) == 4.0
    assert apply_rollover(policy, -2.0) == 0.0

def test_nothing_accrues_before_the_year_starts():
    result = calculate_leave_balance(_policy(), [], 2027, AS_OF)
    assert result.total_accrued == 0.0
    assert result.balance == 0.0

def test_fixed_allowance_prorated_from_employment_start():
    result = calculate_leave_balance(_policy(accrual_amount=36.5), [], 2026, AS_OF,
                                     employment_start=date(2026, 7, 2))
    assert result.total_accrued == pytest.approx(18.3, abs=0.01)

def test_hourly_accrual_uses_hours_worked():
    policy = _policy(accrual_type=AccrualType.HOURLY.value, accrual_rate=0.1, track_in=TrackUnit.HOURS.value)
    result = calculate_leave_balance(policy, [], 2026, AS_OF, hours_worked={2026: 400.0})
    assert result.total_accrued == 40.0

def test_does_not_accrue_uses_constant_amount():
    result = calculate_leave_balance(_policy(accrual_type=AccrualType.DOES_NOT_ACCRUE.value, accrual_amount=3.0),
                                     [], 2026, AS_OF)
    assert result.total_accrued == 3.0

def test_calculation_is_deterministic():
    policy = _policy(rollover_type=RolloverType.ENTIRE_BALANCE.value)
    requests = [_request(date(2025, 8, 4), date(2025, 8, 8)), _request(date(2026, 2, 2), date(2026, 2, 3))]
    first = calculate_leave_balance(policy, requests, 2026, AS_OF, first_year=2025)
    second = calculate_leave_balance(policy, requests, 2026, AS_OF, first_year=2025)
    assert first == second


class TestLeaveBalanceService:

    def test_recalculate_writes_snapshot(self, db_session, policy, member, make_leave):
        make_leave(member, policy, date(THIS_YEAR, 3, 2), date(THIS_YEAR, 3, 6), status=LeaveStatus.APPROVED)

        service = LeaveBalanceService(db_session)
        result = service.recalculate_balance(member.id, policy, THIS_YEAR)
        assert result.balance == 20.0

        snapshot = db_session.query(LeaveBalance).filter_by(user_id=member.id, policy_id=policy.id).one()
        assert snapshot.year == THIS_YEAR
        assert snapshot.balance == 20.0
        assert snapshot.total_used == 5.0

    def test_recalculate_is_idempotent(self, db_session, policy, member, make_leave):
        make_leave(member, policy, date(THIS_YEAR, 3, 2), date(THIS_YEAR, 3, 3), status=LeaveStatus.APPROVED)

        service = LeaveBalanceService(db_session)
        service.recalculate_balance(member.id, policy, THIS_YEAR)
        service.recalculate_balance(member.id, policy, THIS_YEAR)
        assert db_session.query(LeaveBalance).count() == 1

    def test_user_balances_cover_visible_policies(self, db_session, workspace, policy, member, as_actor):
        hidden = LeavePolicy(workspace_id=workspace.id, name="Secret", is_paid=True,
                             accrual_type=AccrualType.FIXED.value, accrual_amount=1.0, is_hidden=True)
        db_session.add(hidden)
        db_session.commit()

        balances = LeaveBalanceService(db_session).get_user_balances(as_actor(member), "acme", year=THIS_YEAR)
        assert [b["policy_name"] for b in balances] == ["Annual Leave"]
        assert balances[0]["balance"] == 25.0
