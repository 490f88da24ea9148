"""Pydantic schemas for API requests and responses."""
from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from salesdesk.core.direct_sales import product_type_from
from salesdesk.core.qualification import LEVEL_ORDER
from salesdesk.models import CLIENT_STATUS_ENUM


class DistributorCreate(BaseModel):
    user_id: int = Field(..., gt=0)
    referral_code: str = Field(..., min_length=1, max_length=50)
    parent_referral_code: Optional[str] = Field(None, max_length=50)

    @field_validator("referral_code", mode="before")
    def strip_code(cls, value: Any) -> str:
        if value is None:
            raise ValueError("Referral code is required.")
        value_str = str(value).strip()
        if not value_str:
            raise ValueError("Referral code cannot be empty.")
        return value_str

    @field_validator("parent_referral_code", mode="before")
    def blank_parent_is_none(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        value_str = str(value).strip()
        return value_str or None


class DistributorRead(BaseModel):
    id: int
    user_id: int
    referral_code: str
    parent_id: Optional[int]
    level: int
    recruited_at: datetime
    active: bool
    commission_rate: Optional[Decimal]

    model_config = ConfigDict(from_attributes=True)


class DistributorNode(DistributorRead):
    depth: int


class ClientCreate(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    seller_code: Optional[str] = Field(None, max_length=50)
    product_type: Optional[str] = Field(None, max_length=50)
    status: str = "prospect"
    installed_on: Optional[date] = None

    @field_validator("first_name", "last_name", mode="before")
    def strip_required_strings(cls, value: Any, info: ValidationInfo) -> str:
        if value is None:
            raise ValueError(f"{info.field_name.replace('_', ' ').title()} is required.")
        value_str = str(value).strip()
        if not value_str:
            raise ValueError(f"{info.field_name.replace('_', ' ').title()} cannot be empty.")
        return value_str

    @field_validator("status")
    def validate_status(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in CLIENT_STATUS_ENUM:
            raise ValueError(f"Status must be one of: {', '.join(CLIENT_STATUS_ENUM)}.")
        return normalized


class ClientRead(ClientCreate):
    id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CommissionRuleWrite(BaseModel):
    level: int = Field(..., ge=1)
    product_type: str
    rate: Decimal = Field(..., ge=0, le=100)
    active: bool = True

    @field_validator("product_type")
    def validate_product(cls, value: str) -> str:
        product = product_type_from(value)
        if product is None:
            raise ValueError(f"Unknown product type '{value}'.")
        return product.value

    @field_validator("rate")
    def quantize_rate(cls, value: Decimal) -> Decimal:
        return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class CommissionRuleRead(CommissionRuleWrite):
    id: int

    model_config = ConfigDict(from_attributes=True)


class SalePropagation(BaseModel):
    client_id: int
    product_type: str
    sale_amount: Decimal = Field(..., gt=0)


class CommissionTransactionRead(BaseModel):
    id: int
    distributor_id: int
    client_id: Optional[int]
    amount: Decimal
    rate: Decimal
    level: int
    product_type: str
    month: str
    status: str
    validated_at: Optional[datetime]
    paid_at: Optional[datetime]
    payment_method: Optional[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PaymentRequest(BaseModel):
    payment_method: str = Field(..., min_length=1, max_length=100)


class StatusTransitionRead(BaseModel):
    distributor_id: int
    month: str
    status: str
    updated: int


class SaleIn(BaseModel):
    product_type: str


class MonthlyCommissionRequest(BaseModel):
    sales: List[SaleIn]


class DetailedSaleRead(BaseModel):
    product_type: str
    points: int
    commission: Decimal
    cumulative_points: int
    tier: int
    client_id: Optional[int] = None
    client_name: Optional[str] = None
    installed_on: Optional[date] = None

    model_config = ConfigDict(from_attributes=True)


class MonthlyCommissionRead(BaseModel):
    total_commission: Decimal
    total_points: int
    zero_point_sales: int
    prorated_commission: Optional[Decimal] = None
    detailed_sales: List[DetailedSaleRead]


class ScheduledPaymentRead(BaseModel):
    kind: str
    seller_code: str
    client_id: Optional[int] = None
    product_type: Optional[str] = None
    earned_on: date
    pay_date: date
    amount: Decimal
    status: str
    days_until_payment: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class PaymentScheduleRead(BaseModel):
    seller_code: str
    month: str
    total_cvd: Decimal
    total_cca: Decimal
    overdue_count: int
    payments: List[ScheduledPaymentRead]


class UpcomingPaymentsRead(BaseModel):
    seller_code: str
    total_cvd: Decimal
    total_cca: Decimal
    total: Decimal
    cvd: List[ScheduledPaymentRead]
    cca: List[ScheduledPaymentRead]

    model_config = ConfigDict(from_attributes=True)


class MonthlyPaymentReportRead(BaseModel):
    month: str
    cvd_date: date
    cca_date: date
    total_cvd: Decimal
    total_cca: Decimal
    total: Decimal
    cvd: List[ScheduledPaymentRead]
    cca: List[ScheduledPaymentRead]

    model_config = ConfigDict(from_attributes=True)


class TierRead(BaseModel):
    tier: int
    min_points: int
    max_points: int
    label: str
    amounts: Dict[str, Decimal]


class QualificationRequest(BaseModel):
    personal_points: int = Field(0, ge=0)
    recruit_count: int = Field(0, ge=0)
    group_points: int = Field(0, ge=0)
    tenure_days: int = Field(0, ge=0)
    team_points: List[int] = Field(default_factory=list)
    team_levels: List[str] = Field(default_factory=list)
    team_revenue: List[Decimal] = Field(default_factory=list)
    revenue: Decimal = Field(Decimal("0"), ge=0)

    @field_validator("team_levels")
    def validate_levels(cls, value: List[str]) -> List[str]:
        for level in value:
            if level not in LEVEL_ORDER:
                raise ValueError(f"Unknown qualification level '{level}'.")
        return value


class TeamPointsRequest(BaseModel):
    team_points: List[int]


class UplineEntry(BaseModel):
    distributor_id: int
    level: str


class TeamBonusRequest(BaseModel):
    new_partner_points: int = Field(..., ge=0)
    upline: List[UplineEntry]


class ParentUpdate(BaseModel):
    parent_referral_code: Optional[str] = Field(None, max_length=50)


class ClientStatusUpdate(BaseModel):
    status: str
    installed_on: Optional[date] = None

    @field_validator("status")
    def validate_status(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in CLIENT_STATUS_ENUM:
            raise ValueError(f"Status must be one of: {', '.join(CLIENT_STATUS_ENUM)}.")
        return normalized


class DistributorSummaryRead(BaseModel):
    distributor_id: int
    referral_code: str
    level: int
    direct_children: int
    network_size: int
    current_month_commissions: Decimal
    total_commissions: Decimal

    model_config = ConfigDict(from_attributes=True)


class NetworkSummaryRead(BaseModel):
    total_distributors: int
    network_clients: int
    current_month_commissions: Decimal
    total_commissions: Decimal
    client_growth_pct: Decimal

    model_config = ConfigDict(from_attributes=True)


class MonthlyReportRead(BaseModel):
    distributor_id: int
    month: str
    transaction_count: int
    total: Decimal
    by_product: Dict[str, Decimal]
    by_status: Dict[str, Decimal]
    transactions: List[CommissionTransactionRead] = Field(default_factory=list)


class CriterionRead(BaseModel):
    name: str
    current: Decimal
    target: Decimal
    met: bool

    model_config = ConfigDict(from_attributes=True)


class TeamBreakdownRead(BaseModel):
    team_index: int
    original_points: int
    effective_points: int
    qualified: bool

    model_config = ConfigDict(from_attributes=True)


class RCQualificationRead(BaseModel):
    qualified: bool
    qualified_teams: int
    total_effective: int
    details: str
    breakdown: List[TeamBreakdownRead]

    model_config = ConfigDict(from_attributes=True)


class QualificationRead(BaseModel):
    level: str
    display_name: str
    next_level: Optional[str]
    satisfied: Dict[str, bool]
    criteria: List[CriterionRead]
    missing: List[str]
    days_remaining: Optional[int]
    rc: RCQualificationRead

    model_config = ConfigDict(from_attributes=True)


class TeamGapRead(BaseModel):
    team: str
    current: int
    delta_to_cap: int

    model_config = ConfigDict(from_attributes=True)


class RCGapsRead(BaseModel):
    personal_delta: int
    delta_to_total: int
    missing_teams: int
    per_team: List[TeamGapRead]

    model_config = ConfigDict(from_attributes=True)


class ObjectiveRead(BaseModel):
    key: str
    title: str
    target: int
    current: int
    delta: int
    priority: int
    suggested_actions: List[str]

    model_config = ConfigDict(from_attributes=True)


class TimeEstimateRead(BaseModel):
    days: int
    confidence: str
    factors: List[str]

    model_config = ConfigDict(from_attributes=True)


class RCActionPlanRead(BaseModel):
    level: str
    days_remaining: int
    personal_points: int
    group_points: int
    team_count: int
    rc: RCQualificationRead
    gaps: RCGapsRead
    objectives: List[ObjectiveRead]
    priorities: List[str]
    progress: int
    estimate: TimeEstimateRead

    model_config = ConfigDict(from_attributes=True)


class TeamBonusPayoutRead(BaseModel):
    distributor_id: int
    level: str
    amount: Decimal
    generation: int

    model_config = ConfigDict(from_attributes=True)


class TeamBonusRead(BaseModel):
    new_partner_points: int
    total: Decimal
    payouts: List[TeamBonusPayoutRead]

    model_config = ConfigDict(from_attributes=True)


class AuthorizationRead(BaseModel):
    level: str
    action: str
    authorized: bool
