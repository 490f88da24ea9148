"""Team animation bonus (CAE) paid to the upline of a newly qualified partner."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, List, Mapping, Optional, Set

from salesdesk.core.qualification import CQ_PERSONAL_POINTS, ETL, ETT, MANAGER, RC, RD, RVP, SVP

logger = logging.getLogger(__name__)

# level -> (first generation, second generation)
TEAM_BONUS_CONFIG: Mapping[str, tuple] = {
    ETT: (Decimal("40"), None),
    ETL: (Decimal("140"), None),
    MANAGER: (Decimal("290"), Decimal("60")),
    RC: (Decimal("390"), Decimal("40")),
    RD: (Decimal("390"), Decimal("40")),
    RVP: (Decimal("390"), Decimal("40")),
    SVP: (Decimal("410"), Decimal("40")),
}


@dataclass
class UplineMember:
    distributor_id: int
    level: str


@dataclass
class TeamBonusPayout:
    distributor_id: int
    level: str
    amount: Decimal
    generation: int


@dataclass
class TeamBonusDistribution:
    new_partner_points: int
    payouts: List[TeamBonusPayout] = field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return sum((payout.amount for payout in self.payouts), Decimal("0"))


def _first_generation_amount(level: str, paid_levels: Set[str]) -> Decimal:
    base = TEAM_BONUS_CONFIG[level][0]
    ett_share = TEAM_BONUS_CONFIG[ETT][0] if ETT in paid_levels else Decimal("0")

    if level == ETT:
        return base
    if level == ETL:
        return base - ett_share
    if level == MANAGER:
        etl_share = Decimal("0")
        if ETL in paid_levels:
            etl_share = TEAM_BONUS_CONFIG[ETL][0] - ett_share
        return base - ett_share - etl_share

    # Executives top the line up to their own amount.
    if MANAGER in paid_levels:
        already_paid = TEAM_BONUS_CONFIG[MANAGER][0]
    elif ETL in paid_levels:
        already_paid = TEAM_BONUS_CONFIG[ETL][0]
    else:
        already_paid = ett_share
    return max(base - already_paid, Decimal("0"))


def distribute_team_bonus(
    new_partner_points: int,
    upline: Iterable[UplineMember],
) -> TeamBonusDistribution:
    """Split the CAE for a partner who just qualified among their upline.

    ``upline`` is ordered nearest sponsor first. Each level is paid once at
    its first-generation rate (minus what lower levels below it already
    took), and a second time at its second-generation rate when it has one.
    """

    distribution = TeamBonusDistribution(new_partner_points=new_partner_points)
    if new_partner_points < CQ_PERSONAL_POINTS:
        return distribution

    paid_levels: Set[str] = set()
    occurrences: dict[str, int] = {}

    for member in upline:
        if member.level not in TEAM_BONUS_CONFIG:
            continue
        seen = occurrences.get(member.level, 0)
        occurrences[member.level] = seen + 1

        amount: Optional[Decimal] = None
        generation = seen + 1
        if seen == 0:
            amount = _first_generation_amount(member.level, paid_levels)
            paid_levels.add(member.level)
        elif seen == 1:
            amount = TEAM_BONUS_CONFIG[member.level][1]

        if amount and amount > 0:
            distribution.payouts.append(
                TeamBonusPayout(
                    distributor_id=member.distributor_id,
                    level=member.level,
                    amount=amount,
                    generation=generation,
                )
            )

    logger.info(
        "Team bonus distributed: %s payout(s), total %s",
        len(distribution.payouts),
        distribution.total,
    )
    return distribution


__all__ = [
    "TEAM_BONUS_CONFIG",
    "TeamBonusDistribution",
    "TeamBonusPayout",
    "UplineMember",
    "distribute_team_bonus",
]
