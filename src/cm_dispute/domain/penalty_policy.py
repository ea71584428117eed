"""Penalty tables and the automatic-suspension hook.

Points and ban lengths per action are fixed. Dispute resolution uses its own
fixed amounts (a dispute warning weighs more than an ad-hoc admin warning).
"""

from datetime import datetime, timedelta

from src.cm_common.enums import PenaltyAction, ReportAction

PENALTY_POINTS: dict[PenaltyAction, int] = {
    PenaltyAction.WARNING: 1,
    PenaltyAction.TEMP_BAN_1DAY: 3,
    PenaltyAction.TEMP_BAN_3DAYS: 5,
    PenaltyAction.TEMP_BAN_7DAYS: 7,
    PenaltyAction.TEMP_BAN_30DAYS: 10,
    PenaltyAction.PERMANENT_BAN: 50,
    PenaltyAction.TRUST_LEVEL_DOWNGRADE: 2,
}

BAN_DAYS: dict[PenaltyAction, int] = {
    PenaltyAction.TEMP_BAN_1DAY: 1,
    PenaltyAction.TEMP_BAN_3DAYS: 3,
    PenaltyAction.TEMP_BAN_7DAYS: 7,
    PenaltyAction.TEMP_BAN_30DAYS: 30,
    PenaltyAction.PERMANENT_BAN: 100 * 365,
}

# Fixed amounts applied by dispute resolution
DISPUTE_WARNING_POINTS = 2
DISPUTE_SELLER_BAN_POINTS = 3


def points_for(action: PenaltyAction | str) -> int:
    return PENALTY_POINTS[PenaltyAction(action)]


def banned_until_for(action: PenaltyAction | str, now: datetime) -> datetime | None:
    days = BAN_DAYS.get(PenaltyAction(action))
    return now + timedelta(days=days) if days is not None else None


def evaluate_auto_suspension(
    penalty_points: int, threshold: int, days: int, now: datetime
) -> datetime | None:
    """Return the suspension end when accumulated points reach the threshold.

    A threshold of 0 disables the rule.
    """
    if threshold <= 0 or penalty_points < threshold:
        return None
    return now + timedelta(days=days)


# Report resolution: the admin's decision picks the penalty issued to the reported user
REPORT_ACTION_PENALTIES: dict[ReportAction, PenaltyAction] = {
    ReportAction.WARNING: PenaltyAction.WARNING,
    ReportAction.SUSPEND: PenaltyAction.TEMP_BAN_7DAYS,
    ReportAction.BAN: PenaltyAction.PERMANENT_BAN,
}


def penalty_for_report(action: ReportAction | str) -> PenaltyAction:
    return REPORT_ACTION_PENALTIES[ReportAction(action)]
