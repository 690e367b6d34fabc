"""
Exceptions du domaine de classement
"""


class RankingError(Exception):
    """Erreur de base du pipeline score/classement"""


class ComputationError(RankingError):
    """Échec d'une lecture/écriture nécessaire au calcul (score ou cycle de classement)"""


class ConfigurationError(RankingError):
    """Configuration des pondérations invalide (les pondérations par défaut sont utilisées)"""

    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))
