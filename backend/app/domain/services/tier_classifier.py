"""
Classification des paliers de classement (percentile calculé à partir du rang).
Les seuils flottent avec la taille de la population entre deux cycles.
"""
from app.domain.entities import Tier

# Seuils de percentile, évalués du plus haut au plus bas
TIER_THRESHOLDS = (
    (Tier.DIAMOND, 0.95),   # Top 5%
    (Tier.PLATINUM, 0.85),  # Top 15%
    (Tier.GOLD, 0.70),      # Top 30%
    (Tier.SILVER, 0.50),    # Top 50%
)


def rank_percentile(rank: int, total_users: int) -> float:
    """Percentile (0-1] d'un rang : le rang 1 vaut 1.0"""
    if total_users <= 0:
        return 0.0
    return (total_users - rank + 1) / total_users


def classify_tier(rank: int, total_users: int) -> Tier:
    """Palier d'un utilisateur selon son rang (1 = meilleur) et la taille de la population"""
    if total_users <= 0:
        return Tier.BRONZE

    percentile = rank_percentile(rank, total_users)
    for tier, threshold in TIER_THRESHOLDS:
        if percentile >= threshold:
            return tier
    return Tier.BRONZE


def calculate_percentile(rank: int, total_users: int) -> int:
    """Percentile arrondi en pourcentage (0-100)"""
    return round(rank_percentile(rank, total_users) * 100)
