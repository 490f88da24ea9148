"""Routes exposing the qualification evaluator and team bonus."""
from __future__ import annotations

from fastapi import APIRouter

from salesdesk.core.qualification import (
    QualificationMetrics,
    compute_rc_qualification,
    evaluate,
    is_authorized,
    rc_action_plan,
)
from salesdesk.core.team_bonus import UplineMember, distribute_team_bonus
from salesdesk.schemas import (
    AuthorizationRead,
    QualificationRead,
    QualificationRequest,
    RCActionPlanRead,
    RCQualificationRead,
    TeamBonusRead,
    TeamBonusRequest,
    TeamPointsRequest,
)

router = APIRouter(prefix="/qualification", tags=["Qualification"])


def _metrics(payload: QualificationRequest) -> QualificationMetrics:
    return QualificationMetrics(**payload.model_dump())


@router.post("", response_model=QualificationRead)
def qualify(payload: QualificationRequest):
    return QualificationRead.model_validate(evaluate(_metrics(payload)))


@router.post("/rc", response_model=RCQualificationRead)
def rc(payload: TeamPointsRequest):
    return RCQualificationRead.model_validate(compute_rc_qualification(payload.team_points))


@router.post("/rc/action-plan", response_model=RCActionPlanRead)
def action_plan(payload: QualificationRequest):
    return RCActionPlanRead.model_validate(rc_action_plan(_metrics(payload)))


@router.post("/team-bonus", response_model=TeamBonusRead)
def team_bonus(payload: TeamBonusRequest):
    upline = [UplineMember(distributor_id=entry.distributor_id, level=entry.level) for entry in payload.upline]
    return TeamBonusRead.model_validate(distribute_team_bonus(payload.new_partner_points, upline))


@router.get("/authorize/{level}/{action}", response_model=AuthorizationRead)
def authorize(level: str, action: str) -> AuthorizationRead:
    return AuthorizationRead(level=level, action=action, authorized=is_authorized(level, action))
