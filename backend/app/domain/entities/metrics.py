"""
Entités UserMetrics et ProgressEntry - Domain Layer
Métriques brutes soumises par un utilisateur (une soumission = un document)
"""
from datetime import datetime
from typing import Dict, List, Optional

from .base import DocumentModel

# Poids de corps utilisé par le score de force quand il est absent ou nul
DEFAULT_BODY_WEIGHT_KG = 70.0


class UserMetrics(DocumentModel):
    """Métriques d'entraînement d'un utilisateur.

    Tous les champs sont optionnels. Un champ absent vaut 0 (ou liste vide)
    pour le calcul des scores, sauf body_weight qui vaut DEFAULT_BODY_WEIGHT_KG.
    """
    # Force
    max_weight_lifted: Optional[float] = None  # kg
    one_rep_max: Optional[float] = None  # kg
    total_weight_lifted: Optional[float] = None  # kg (volume)
    body_weight: Optional[float] = None  # kg
    strength_exercises: Optional[List[str]] = None

    # Endurance
    workout_duration: Optional[float] = None  # minutes
    cardio_minutes: Optional[float] = None
    rest_time_between_sets: Optional[float] = None  # secondes
    heart_rate_data: Optional[List[float]] = None  # bpm
    max_heart_rate: Optional[float] = None  # bpm
    endurance_exercises: Optional[List[str]] = None

    # Régularité
    workout_streak: Optional[int] = None  # jours
    total_workouts: Optional[int] = None
    days_since_start: Optional[int] = None
    missed_workouts: Optional[int] = None
    workout_frequency: Optional[float] = None  # séances / semaine
    last_workout_date: Optional[datetime] = None

    # Métriques supplémentaires
    calories_burned: Optional[float] = None
    workout_intensity: Optional[float] = None  # échelle 0-10
    workout_satisfaction: Optional[float] = None  # échelle 0-10
    custom_metrics: Optional[Dict[str, float]] = None

    user_id: Optional[str] = None
    timestamp: Optional[datetime] = None  # injecté par le validateur à la soumission

    def activity_dates(self) -> List[datetime]:
        """Horodatages d'activité portés par les métriques (soumission, dernière séance)"""
        dates = [self.timestamp] if self.timestamp else []
        if self.last_workout_date:
            dates.append(self.last_workout_date)
        return dates


class ProgressEntry(DocumentModel):
    """Entrée de suivi de progression saisie par l'utilisateur"""
    date: datetime
    squat: Optional[float] = None  # kg
    bench: Optional[float] = None  # kg
    deadlift: Optional[float] = None  # kg
    notes: Optional[str] = None
