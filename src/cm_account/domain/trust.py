"""Trust level: the single authority for both the profile read and the penalty path.

The level earned from ratings is demoted one tier per recorded downgrade
penalty, never below BRONZE. Because downgrades are stored as a count rather
than by overwriting the level, a later rating recomputation cannot silently
undo a penalty.
"""

from src.cm_common.enums import TrustLevel

TRUST_ORDER: tuple[TrustLevel, ...] = (
    TrustLevel.BRONZE,
    TrustLevel.SILVER,
    TrustLevel.GOLD,
    TrustLevel.VERIFIED,
)


def rating_trust_level(avg_rating: float, total_reviews: int) -> TrustLevel:
    """Level earned from reviews alone; fewer than 3 reviews stays BRONZE."""
    if total_reviews < 3:
        return TrustLevel.BRONZE
    if avg_rating >= 4.5 and total_reviews >= 10:
        return TrustLevel.VERIFIED
    if avg_rating >= 4.0 and total_reviews >= 5:
        return TrustLevel.GOLD
    if avg_rating >= 3.5:
        return TrustLevel.SILVER
    return TrustLevel.BRONZE


def demote(level: TrustLevel | str, steps: int = 1) -> TrustLevel:
    idx = TRUST_ORDER.index(TrustLevel(level))
    return TRUST_ORDER[max(0, idx - steps)]


def compute_trust_level(avg_rating: float, total_reviews: int, downgrades: int) -> TrustLevel:
    return demote(rating_trust_level(avg_rating, total_reviews), downgrades)
