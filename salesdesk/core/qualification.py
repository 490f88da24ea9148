"""MLM qualification levels and the rules that grant them.

Every level has its own predicate over the distributor's current metrics.
Predicates are evaluated independently: the current level is the highest
level whose predicate holds, not the end of a progression that stops at the
first failure.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)

CONSEILLER = "Conseiller"
CQ = "CQ"
ETT = "ETT"
ETL = "ETL"
MANAGER = "Manager"
RC = "RC"
RD = "RD"
RVP = "RVP"
SVP = "SVP"

LEVEL_ORDER = (CONSEILLER, CQ, ETT, ETL, MANAGER, RC, RD, RVP, SVP)

QUALIFICATION_CONFIG = {
    CONSEILLER: {"displayName": "Conseiller", "deadlineDays": None, "bonus": Decimal("0")},
    CQ: {"displayName": "Conseiller Qualifié", "deadlineDays": 30, "bonus": Decimal("300")},
    ETT: {"displayName": "Executive Team Trainer", "deadlineDays": 30, "bonus": Decimal("800")},
    ETL: {"displayName": "Executive Team Leader", "deadlineDays": 120, "bonus": Decimal("2000")},
    MANAGER: {"displayName": "Manager", "deadlineDays": 180, "bonus": Decimal("5000")},
    RC: {"displayName": "Regional Coordinator", "deadlineDays": 360, "bonus": Decimal("16000")},
    RD: {"displayName": "Regional Director", "deadlineDays": None, "bonus": Decimal("0")},
    RVP: {"displayName": "Regional Vice-President", "deadlineDays": 540, "bonus": Decimal("30000")},
    SVP: {"displayName": "Senior Vice-President", "deadlineDays": 720, "bonus": Decimal("50000")},
}

# Thresholds
CQ_PERSONAL_POINTS = 25
ETT_PERSONAL_POINTS = 50
ETT_MIN_RECRUITS = 2
ETT_GROUP_POINTS = 100
ETT_GROUP_CAP = 50
ETL_PERSONAL_POINTS = 75
ETL_MIN_ETT_TEAMS = 2
MANAGER_PERSONAL_POINTS = 100
MANAGER_MIN_TEAMS = 4
MANAGER_TEAM_POINTS = 500
RC_PERSONAL_POINTS = 100
RC_TEAM_CAP = 4000
RC_MIN_TEAMS = 4
RC_TOTAL_POINTS = 16000
RD_MIN_GROUPS = 5
RD_REVENUE = Decimal("400000")
RVP_MIN_GROUPS = 6
RVP_REVENUE = Decimal("600000")
RVP_LEADERS = {RD: 3, RC: 2, MANAGER: 1}
SVP_MIN_GROUPS = 6
SVP_REVENUE = Decimal("1000000")
SVP_BRANCH_CAP = Decimal("200000")
SVP_LEADERS = {RVP: 3, RD: 2, RC: 1}

# Minimum level allowed to perform each action.
ACTION_LEVELS = {
    "create_prospect": CQ,
    "edit_client": CQ,
    "view_team": ETT,
    "create_team_task": ETT,
    "view_team_commissions": ETL,
    "edit_group_settings": MANAGER,
    "advanced_management": RC,
    "full_administration": RVP,
    "executive_management": SVP,
}


def level_rank(level: Optional[str]) -> int:
    """Return the position of ``level`` in the ladder, -1 when unknown."""
    try:
        return LEVEL_ORDER.index(level)
    except ValueError:
        return -1


def next_level(level: str) -> Optional[str]:
    rank = level_rank(level)
    if rank < 0 or rank >= len(LEVEL_ORDER) - 1:
        return None
    return LEVEL_ORDER[rank + 1]


def is_authorized(level: str, action: str) -> bool:
    """Return True when a distributor at ``level`` may perform ``action``."""
    required = ACTION_LEVELS.get(action)
    if required is None:
        return False
    rank = level_rank(level)
    return rank > 0 and rank >= level_rank(required)


@dataclass
class QualificationMetrics:
    """Inputs of the evaluator.

    ``team_points``, ``team_levels`` and ``team_revenue`` describe the groups
    headed by each direct recruit, in the same order.
    """

    personal_points: int = 0
    recruit_count: int = 0
    group_points: int = 0
    tenure_days: int = 0
    team_points: List[int] = field(default_factory=list)
    team_levels: List[str] = field(default_factory=list)
    team_revenue: List[Decimal] = field(default_factory=list)
    revenue: Decimal = Decimal("0")

    @property
    def group_count(self) -> int:
        known = max(len(self.team_points), len(self.team_levels), len(self.team_revenue))
        return known or self.recruit_count

    @property
    def cumulative_revenue(self) -> Decimal:
        if self.team_revenue:
            return sum((Decimal(str(value)) for value in self.team_revenue), Decimal("0"))
        return Decimal(str(self.revenue))


@dataclass
class Criterion:
    name: str
    current: Decimal | int
    target: Decimal | int

    @property
    def met(self) -> bool:
        return self.current >= self.target

    @property
    def missing(self) -> Decimal | int:
        return max(self.target - self.current, 0)


@dataclass
class TeamBreakdown:
    team_index: int
    original_points: int
    effective_points: int
    qualified: bool


@dataclass
class RCQualification:
    qualified_teams: int
    total_effective: int
    breakdown: List[TeamBreakdown] = field(default_factory=list)

    @property
    def has_minimum_teams(self) -> bool:
        return self.qualified_teams >= RC_MIN_TEAMS

    @property
    def has_minimum_points(self) -> bool:
        return self.total_effective >= RC_TOTAL_POINTS

    @property
    def qualified(self) -> bool:
        return self.has_minimum_teams and self.has_minimum_points

    @property
    def details(self) -> str:
        text = (
            f"{self.qualified_teams}/{RC_MIN_TEAMS} teams at {RC_TEAM_CAP}+ points, "
            f"{self.total_effective}/{RC_TOTAL_POINTS} effective points."
        )
        if not self.has_minimum_teams:
            text += f" Missing {RC_MIN_TEAMS - self.qualified_teams} qualified team(s)."
        if not self.has_minimum_points:
            text += f" Missing {RC_TOTAL_POINTS - self.total_effective} effective points."
        if self.qualified:
            text += " RC qualification reached."
        return text


@dataclass
class QualificationResult:
    level: str
    next_level: Optional[str]
    satisfied: Dict[str, bool]
    criteria: List[Criterion]
    missing: List[str]
    days_remaining: Optional[int]
    rc: RCQualification

    @property
    def display_name(self) -> str:
        return QUALIFICATION_CONFIG[self.level]["displayName"]

    @property
    def criteria_met(self) -> bool:
        return not self.missing


def compute_rc_qualification(team_points: Iterable[int]) -> RCQualification:
    """Count the teams at the RC threshold and sum every team's capped points.

    A team contributes at most ``RC_TEAM_CAP`` points to the total, so one
    oversized team cannot carry the qualification alone.
    """

    breakdown: List[TeamBreakdown] = []
    for index, points in enumerate(team_points):
        points = int(points)
        effective = min(max(points, 0), RC_TEAM_CAP)
        breakdown.append(
            TeamBreakdown(
                team_index=index,
                original_points=points,
                effective_points=effective,
                qualified=points >= RC_TEAM_CAP,
            )
        )

    return RCQualification(
        qualified_teams=sum(1 for team in breakdown if team.qualified),
        total_effective=sum(team.effective_points for team in breakdown),
        breakdown=breakdown,
    )


def ett_group_points(metrics: QualificationMetrics) -> int:
    """Group points for ETT: each team counts for at most ``ETT_GROUP_CAP``."""

    if metrics.team_points:
        return sum(min(max(int(points), 0), ETT_GROUP_CAP) for points in metrics.team_points)
    return metrics.group_points


def teams_at_or_above(team_levels: Iterable[str], level: str) -> int:
    threshold = level_rank(level)
    return sum(1 for team_level in team_levels if level_rank(team_level) >= threshold)


def allocate_leader_teams(team_levels: Sequence[str], requirements: Mapping[str, int]) -> Dict[str, int]:
    """Match distinct teams to per-level leader requirements.

    A team led at a higher level also satisfies a lower requirement, but each
    team is counted once. Requirements are served from the highest level
    down, which is optimal because every team able to fill a higher slot can
    fill any lower one.
    """

    available = sorted((level_rank(level) for level in team_levels), reverse=True)
    matched: Dict[str, int] = {}
    for level in sorted(requirements, key=level_rank, reverse=True):
        needed = requirements[level]
        threshold = level_rank(level)
        taken = 0
        while taken < needed and available and available[0] >= threshold:
            available.pop(0)
            taken += 1
        matched[level] = taken
    return matched


def capped_branch_revenue(metrics: QualificationMetrics, cap: Decimal) -> Decimal:
    if not metrics.team_revenue:
        return metrics.cumulative_revenue
    return sum((min(Decimal(str(value)), cap) for value in metrics.team_revenue), Decimal("0"))


def _cq_criteria(metrics: QualificationMetrics, rc: RCQualification) -> List[Criterion]:
    return [Criterion("personal_points", metrics.personal_points, CQ_PERSONAL_POINTS)]


def _ett_criteria(metrics: QualificationMetrics, rc: RCQualification) -> List[Criterion]:
    return [
        Criterion("personal_points", metrics.personal_points, ETT_PERSONAL_POINTS),
        Criterion("recruits", metrics.recruit_count, ETT_MIN_RECRUITS),
        Criterion("group_points", ett_group_points(metrics), ETT_GROUP_POINTS),
    ]


def _etl_criteria(metrics: QualificationMetrics, rc: RCQualification) -> List[Criterion]:
    return [
        Criterion("personal_points", metrics.personal_points, ETL_PERSONAL_POINTS),
        Criterion("ett_teams", teams_at_or_above(metrics.team_levels, ETT), ETL_MIN_ETT_TEAMS),
    ]


def _manager_criteria(metrics: QualificationMetrics, rc: RCQualification) -> List[Criterion]:
    strong_teams = sum(1 for points in metrics.team_points if points >= MANAGER_TEAM_POINTS)
    return [
        Criterion("personal_points", metrics.personal_points, MANAGER_PERSONAL_POINTS),
        Criterion("teams_500", strong_teams, MANAGER_MIN_TEAMS),
    ]


def _rc_criteria(metrics: QualificationMetrics, rc: RCQualification) -> List[Criterion]:
    return [
        Criterion("personal_points", metrics.personal_points, RC_PERSONAL_POINTS),
        Criterion("qualified_teams", rc.qualified_teams, RC_MIN_TEAMS),
        Criterion("effective_points", rc.total_effective, RC_TOTAL_POINTS),
    ]


def _rd_criteria(metrics: QualificationMetrics, rc: RCQualification) -> List[Criterion]:
    return [
        Criterion("groups", metrics.group_count, RD_MIN_GROUPS),
        Criterion("revenue", metrics.cumulative_revenue, RD_REVENUE),
    ]


def _leader_criteria(metrics: QualificationMetrics, requirements: Mapping[str, int]) -> List[Criterion]:
    matched = allocate_leader_teams(metrics.team_levels, requirements)
    return [
        Criterion(f"{level.lower()}_teams", matched[level], needed)
        for level, needed in requirements.items()
    ]


def _rvp_criteria(metrics: QualificationMetrics, rc: RCQualification) -> List[Criterion]:
    return [
        Criterion("groups", metrics.group_count, RVP_MIN_GROUPS),
        Criterion("revenue", metrics.cumulative_revenue, RVP_REVENUE),
        *_leader_criteria(metrics, RVP_LEADERS),
    ]


def _svp_criteria(metrics: QualificationMetrics, rc: RCQualification) -> List[Criterion]:
    return [
        Criterion("groups", metrics.group_count, SVP_MIN_GROUPS),
        Criterion("capped_revenue", capped_branch_revenue(metrics, SVP_BRANCH_CAP), SVP_REVENUE),
        *_leader_criteria(metrics, SVP_LEADERS),
    ]


LEVEL_CRITERIA: Dict[str, Callable[[QualificationMetrics, RCQualification], List[Criterion]]] = {
    CONSEILLER: lambda metrics, rc: [],
    CQ: _cq_criteria,
    ETT: _ett_criteria,
    ETL: _etl_criteria,
    MANAGER: _manager_criteria,
    RC: _rc_criteria,
    RD: _rd_criteria,
    RVP: _rvp_criteria,
    SVP: _svp_criteria,
}

_CRITERION_LABELS = {
    "personal_points": "personal points",
    "recruits": "recruit(s)",
    "group_points": "group points (max 50 per group)",
    "ett_teams": "team(s) with an ETT",
    "teams_500": "team(s) at 500 points",
    "qualified_teams": "team(s) at 4000 points",
    "effective_points": "effective points (max 4000 per team)",
    "groups": "group(s)",
    "revenue": "revenue",
    "capped_revenue": "revenue (max 200000 per branch)",
}


def _describe_missing(criterion: Criterion) -> str:
    label = _CRITERION_LABELS.get(criterion.name)
    if label is None:
        level = criterion.name.split("_")[0].upper()
        label = f"team(s) led at {MANAGER if level == 'MANAGER' else level}"
    return f"{criterion.missing} {label} missing"


def evaluate(metrics: QualificationMetrics) -> QualificationResult:
    """Evaluate every level against ``metrics``."""

    rc = compute_rc_qualification(metrics.team_points)
    satisfied: Dict[str, bool] = {}
    for level in LEVEL_ORDER:
        criteria = LEVEL_CRITERIA[level](metrics, rc)
        satisfied[level] = all(criterion.met for criterion in criteria)

    current = CONSEILLER
    for level in LEVEL_ORDER:
        if satisfied[level]:
            current = level

    upcoming = next_level(current)
    criteria = LEVEL_CRITERIA[upcoming](metrics, rc) if upcoming else []
    missing = [_describe_missing(criterion) for criterion in criteria if not criterion.met]

    days_remaining = None
    if upcoming and QUALIFICATION_CONFIG[upcoming]["deadlineDays"] is not None:
        days_remaining = max(0, QUALIFICATION_CONFIG[upcoming]["deadlineDays"] - metrics.tenure_days)

    logger.debug("Qualification evaluated: level=%s next=%s missing=%s", current, upcoming, missing)
    return QualificationResult(
        level=current,
        next_level=upcoming,
        satisfied=satisfied,
        criteria=criteria,
        missing=missing,
        days_remaining=days_remaining,
        rc=rc,
    )


def qualify(
    personal_points: int,
    recruit_count: int = 0,
    group_points: int = 0,
    tenure_days: int = 0,
    team_points: Optional[Iterable[int]] = None,
    *,
    team_levels: Optional[Iterable[str]] = None,
    team_revenue: Optional[Iterable[Decimal]] = None,
    revenue: Decimal = Decimal("0"),
) -> QualificationResult:
    """Convenience wrapper around :func:`evaluate` taking plain values."""

    metrics = QualificationMetrics(
        personal_points=personal_points,
        recruit_count=recruit_count,
        group_points=group_points,
        tenure_days=tenure_days,
        team_points=list(team_points or []),
        team_levels=list(team_levels or []),
        team_revenue=list(team_revenue or []),
        revenue=revenue,
    )
    return evaluate(metrics)


# --- RC action plan -----------------------------------------------------------

RC_DEADLINE_DAYS = 360


@dataclass
class TeamGap:
    team: str
    current: int
    delta_to_cap: int


@dataclass
class RCGaps:
    personal_delta: int
    delta_to_total: int
    missing_teams: int
    per_team: List[TeamGap]


@dataclass
class Objective:
    key: str
    title: str
    target: int
    current: int
    delta: int
    priority: int
    suggested_actions: List[str] = field(default_factory=list)


@dataclass
class TimeEstimate:
    days: int
    confidence: str
    factors: List[str]


@dataclass
class RCActionPlan:
    level: str
    days_remaining: int
    personal_points: int
    group_points: int
    team_count: int
    rc: RCQualification
    gaps: RCGaps
    objectives: List[Objective]
    priorities: List[str]
    progress: int
    estimate: TimeEstimate


def rc_gaps(metrics: QualificationMetrics, rc: Optional[RCQualification] = None) -> RCGaps:
    rc = rc or compute_rc_qualification(metrics.team_points)
    return RCGaps(
        personal_delta=max(0, RC_PERSONAL_POINTS - metrics.personal_points),
        delta_to_total=max(0, RC_TOTAL_POINTS - rc.total_effective),
        missing_teams=max(0, RC_MIN_TEAMS - rc.qualified_teams),
        per_team=[
            TeamGap(team=str(index + 1), current=points, delta_to_cap=max(0, RC_TEAM_CAP - points))
            for index, points in enumerate(metrics.team_points)
        ],
    )


def rc_progress(metrics: QualificationMetrics, rc: Optional[RCQualification] = None) -> int:
    """Weighted progress toward RC: 40% teams, 40% effective points, 20% personal points."""

    rc = rc or compute_rc_qualification(metrics.team_points)
    teams = Decimal(min(rc.qualified_teams, RC_MIN_TEAMS)) / RC_MIN_TEAMS * 40
    points = min(Decimal(rc.total_effective) / RC_TOTAL_POINTS, Decimal("1")) * 40
    personal = min(Decimal(metrics.personal_points) / RC_PERSONAL_POINTS, Decimal("1")) * 20
    return int((teams + points + personal).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def estimate_time_to_rc(metrics: QualificationMetrics, gaps: Optional[RCGaps] = None) -> TimeEstimate:
    gaps = gaps or rc_gaps(metrics)
    days = 90
    confidence = "medium"
    factors: List[str] = []

    if gaps.missing_teams > 0:
        days += gaps.missing_teams * 60
        factors.append(f"+{gaps.missing_teams * 2} months for new teams")
    if gaps.delta_to_total > 8000:
        days += 120
        factors.append("+4 months to close the points gap")
        confidence = "low"
    if metrics.personal_points < ETL_PERSONAL_POINTS:
        days += 60
        factors.append("+2 months of personal progression")

    if gaps.missing_teams == 0:
        confidence = "high"
    elif gaps.missing_teams <= 1:
        confidence = "medium"

    return TimeEstimate(days=min(days, RC_DEADLINE_DAYS), confidence=confidence, factors=factors)


def _rc_objectives(metrics: QualificationMetrics, gaps: RCGaps, rc: RCQualification, days_remaining: int) -> List[Objective]:
    objectives: List[Objective] = []

    personal_done = gaps.personal_delta == 0
    objectives.append(
        Objective(
            key="personalPoints",
            title="Personal points reached" if personal_done else f"Reach {RC_PERSONAL_POINTS} personal points",
            target=RC_PERSONAL_POINTS,
            current=metrics.personal_points,
            delta=gaps.personal_delta,
            priority=5 if personal_done else 2,
            suggested_actions=(
                ["Keep the current pace"]
                if personal_done
                else ["Close pending installations", "Favour high-point products (Freebox Ultra = 6 pts)"]
            ),
        )
    )

    for team in gaps.per_team:
        if 2000 <= team.current < RC_TEAM_CAP:
            objectives.append(
                Objective(
                    key=f"teamPoints.{team.team}",
                    title=f"Bring team {team.team} to {RC_TEAM_CAP} points",
                    target=RC_TEAM_CAP,
                    current=team.current,
                    delta=team.delta_to_cap,
                    priority=1,
                    suggested_actions=["Coach the team's sellers", "Help finish pending installations"],
                )
            )

    if gaps.missing_teams > 0:
        existing = len(metrics.team_points)
        new_teams = max(0, RC_MIN_TEAMS - existing)
        to_qualify = existing - rc.qualified_teams
        if new_teams and to_qualify:
            title = f"Grow {to_qualify} team(s) and recruit {new_teams} more"
        elif new_teams:
            title = f"Recruit {new_teams} more team(s)"
        else:
            title = f"Qualify your {existing} existing teams"
        objectives.append(
            Objective(
                key="qualifiedTeams",
                title=title,
                target=RC_MIN_TEAMS,
                current=rc.qualified_teams,
                delta=gaps.missing_teams,
                priority=1 if days_remaining < 90 else 2,
                suggested_actions=(
                    ["Recruit new sellers", "Mentor the new recruits"]
                    if new_teams
                    else ["Coach the current teams", "Set clear point goals per team"]
                ),
            )
        )

    strengthen = [team for team in gaps.per_team if 1000 <= team.current < 2000]
    if strengthen:
        objectives.append(
            Objective(
                key="teamDevelopment",
                title="Strengthen intermediate teams",
                target=2000,
                current=max(team.current for team in strengthen),
                delta=min(2000 - team.current for team in strengthen),
                priority=3,
                suggested_actions=["Run team challenges", "Schedule advanced sales training"],
            )
        )

    if 0 < gaps.delta_to_total < 8000:
        objectives.append(
            Objective(
                key="totalEffectivePoints",
                title=f"Reach {RC_TOTAL_POINTS} effective points",
                target=RC_TOTAL_POINTS,
                current=rc.total_effective,
                delta=gaps.delta_to_total,
                priority=2,
                suggested_actions=["Balance effort across teams", "Focus on teams closest to the cap"],
            )
        )

    objectives.sort(key=lambda objective: objective.priority)
    for position, objective in enumerate(objectives, start=1):
        objective.priority = position
    return objectives


def _rc_priorities(gaps: RCGaps, days_remaining: int, level: str) -> List[str]:
    priorities: List[str] = []
    if days_remaining < 180:
        priorities.append("URGENT: limited time left for RC qualification")
    close = [team for team in gaps.per_team if team.current >= 3000 and team.delta_to_cap <= 1000]
    if close:
        priorities.append(f"{len(close)} team(s) close to qualification")
    if gaps.missing_teams > 0:
        priorities.append(f"Recruit {gaps.missing_teams} more team(s)")
    if gaps.personal_delta > 0:
        priorities.append(f"{gaps.personal_delta} personal points missing")
    if level == MANAGER:
        priorities.append("Prepare for RC leadership")
    return priorities


def rc_action_plan(metrics: QualificationMetrics) -> RCActionPlan:
    """Build the personalised plan toward Regional Coordinator."""

    result = evaluate(metrics)
    rc = result.rc
    days_remaining = max(0, RC_DEADLINE_DAYS - metrics.tenure_days)
    gaps = rc_gaps(metrics, rc)
    return RCActionPlan(
        level=result.level,
        days_remaining=days_remaining,
        personal_points=metrics.personal_points,
        group_points=metrics.group_points,
        team_count=len(metrics.team_points),
        rc=rc,
        gaps=gaps,
        objectives=_rc_objectives(metrics, gaps, rc, days_remaining),
        priorities=_rc_priorities(gaps, days_remaining, result.level),
        progress=rc_progress(metrics, rc),
        estimate=estimate_time_to_rc(metrics, gaps),
    )
