from decimal import Decimal

import pytest

from salesdesk.core.qualification import (
    CONSEILLER,
    CQ,
    ETL,
    ETT,
    MANAGER,
    RC,
    RD,
    RVP,
    RVP_LEADERS,
    SVP,
    QualificationMetrics,
    allocate_leader_teams,
    compute_rc_qualification,
    estimate_time_to_rc,
    is_authorized,
    next_level,
    qualify,
    rc_action_plan,
)


def test_rc_cap_then_sum():
    rc = compute_rc_qualification([5000, 3000, 3000, 3000, 3000])

    assert rc.qualified_teams == 1
    assert rc.total_effective == 4000 + 3000 * 4
    assert [team.effective_points for team in rc.breakdown] == [4000, 3000, 3000, 3000, 3000]
    assert not rc.qualified


@pytest.mark.parametrize(
    "teams",
    [[], [0], [4000] * 4, [20000], [3999, 4001, 12000, 100, 4000], list(range(0, 10000, 750))],
)
def test_rc_total_never_exceeds_cap_times_teams(teams):
    rc = compute_rc_qualification(teams)
    assert rc.total_effective <= 4000 * len(teams)
    assert rc.qualified_teams == sum(1 for points in teams if points >= 4000)


def test_one_huge_team_cannot_carry_rc():
    rc = compute_rc_qualification([50000])
    assert rc.total_effective == 4000
    assert not rc.qualified
    assert "Missing 3 qualified team(s)" in rc.details


def test_personal_points_thresholds():
    assert qualify(24).level == CONSEILLER
    result = qualify(25, tenure_days=10)
    assert result.level == CQ
    assert result.next_level == ETT
    assert result.days_remaining == 20


def test_ett_caps_each_team_at_fifty():
    assert qualify(50, recruit_count=2, team_points=[60, 60]).level == ETT

    short = qualify(50, recruit_count=2, team_points=[200, 10])
    assert short.level == CQ
    assert "40 group points (max 50 per group) missing" in short.missing


def test_ett_uses_group_points_without_team_breakdown():
    assert qualify(50, recruit_count=2, group_points=100).level == ETT
    assert qualify(50, recruit_count=1, group_points=100).level == CQ


def test_etl_needs_two_ett_led_teams():
    result = qualify(75, recruit_count=2, team_points=[60, 60], team_levels=[ETT, MANAGER])
    assert result.level == ETL

    result = qualify(75, recruit_count=2, team_points=[60, 60], team_levels=[ETT, CQ])
    assert result.level == ETT
    assert result.missing == ["1 team(s) with an ETT missing"]


def test_levels_are_evaluated_independently():
    result = qualify(100, recruit_count=0, team_points=[600, 600, 600, 600])

    assert result.satisfied[ETT] is False
    assert result.satisfied[ETL] is False
    assert result.satisfied[MANAGER] is True
    assert result.level == MANAGER


def test_rc_level():
    assert qualify(100, team_points=[4000] * 4).level == RC
    assert qualify(100, team_points=[5000, 3000, 3000, 3000, 3000]).level == MANAGER


def test_rd_needs_groups_and_revenue():
    result = qualify(0, team_points=[1] * 5, revenue=Decimal("400000"))
    assert result.level == RD
    assert result.next_level == RVP
    assert qualify(0, team_points=[1] * 4, revenue=Decimal("900000")).level == CONSEILLER


def test_leader_teams_are_counted_once():
    matched = allocate_leader_teams([RVP, RD, RD, RC, RC, MANAGER], RVP_LEADERS)
    assert matched == {RD: 3, RC: 2, MANAGER: 1}

    matched = allocate_leader_teams([RD, RD, RD, RC, CQ, CQ], RVP_LEADERS)
    assert matched == {RD: 3, RC: 1, MANAGER: 0}


def test_rvp():
    levels = [RD, RD, RD, RC, RC, MANAGER]
    assert qualify(0, team_levels=levels, revenue=Decimal("600000")).level == RVP

    weaker = qualify(0, team_levels=[RD, RD, RD, RC, MANAGER, CQ], revenue=Decimal("600000"))
    assert weaker.level == RD
    assert "1 team(s) led at RC missing" in weaker.missing


def test_svp_caps_each_branch():
    levels = [RVP, RVP, RVP, RD, RD, RC]
    balanced = [Decimal("200000")] * 5 + [Decimal("300000")]
    assert qualify(0, team_levels=levels, team_revenue=balanced).level == SVP

    lopsided = [Decimal("500000"), Decimal("500000")] + [Decimal("100000")] * 4
    result = qualify(0, team_levels=levels, team_revenue=lopsided)
    assert result.level == RVP
    assert result.next_level == SVP


def test_days_remaining_never_negative():
    assert qualify(25, tenure_days=400).days_remaining == 0
    assert qualify(0, team_points=[1] * 5, revenue=Decimal("400000")).days_remaining == 540


def test_next_level_and_authorization():
    assert next_level(RC) == RD
    assert next_level(SVP) is None
    assert next_level("Nobody") is None

    assert is_authorized(CQ, "create_prospect")
    assert not is_authorized(CONSEILLER, "create_prospect")
    assert not is_authorized(ETT, "view_team_commissions")
    assert is_authorized(MANAGER, "edit_group_settings")
    assert is_authorized(SVP, "executive_management")
    assert not is_authorized(RVP, "executive_management")
    assert not is_authorized(SVP, "launch_rockets")
    assert not is_authorized("Nobody", "create_prospect")


def test_rc_action_plan():
    metrics = QualificationMetrics(personal_points=80, tenure_days=200, team_points=[4200, 3500, 1500])

    plan = rc_action_plan(metrics)

    assert plan.days_remaining == 160
    assert plan.gaps.personal_delta == 20
    assert plan.gaps.delta_to_total == 7000
    assert plan.gaps.missing_teams == 3
    assert [gap.delta_to_cap for gap in plan.gaps.per_team] == [0, 500, 2500]
    assert plan.progress == 49
    assert plan.estimate.days == 270
    assert plan.estimate.confidence == "medium"
    assert plan.objectives[0].key == "teamPoints.2"
    assert [objective.priority for objective in plan.objectives] == [1, 2, 3, 4, 5]
    assert plan.priorities[0].startswith("URGENT")
    assert "2 team(s) close to qualification" in plan.priorities


def test_estimate_is_capped():
    estimate = estimate_time_to_rc(QualificationMetrics())
    assert estimate.days == 360
    assert estimate.confidence == "low"
