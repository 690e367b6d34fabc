"""
Module de validation des métriques utilisateur
Valide et assainit toutes les données entrantes avant le calcul des scores.

Chaque champ est validé indépendamment : une erreur sur un champ ne bloque pas
la validation des autres, toutes les erreurs sont collectées. La valeur écrite
dans les données assainies est la valeur convertie (float, entier tronqué,
chaîne nettoyée, datetime UTC), jamais la valeur brute.
"""
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from app.domain.entities import WeightConfiguration, SCORE_CATEGORIES, utc_now

logger = logging.getLogger(__name__)

# (min, max, entier ?, message d'erreur) - bornes inclusives
NUMERIC_BOUNDS = {
    # Force
    "maxWeightLifted": (0, 10000, False, "maxWeightLifted must be a positive number between 0 and 10000"),
    "oneRepMax": (0, 10000, False, "oneRepMax must be a positive number between 0 and 10000"),
    "totalWeightLifted": (0, 1000000, False, "totalWeightLifted must be a positive number between 0 and 1000000"),
    "bodyWeight": (20, 500, False, "bodyWeight must be a positive number between 20 and 500 kg"),
    # Endurance
    "workoutDuration": (0, 1440, False, "workoutDuration must be a positive number between 0 and 1440 minutes"),
    "cardioMinutes": (0, 1440, False, "cardioMinutes must be a positive number between 0 and 1440 minutes"),
    "restTimeBetweenSets": (0, 600, False, "restTimeBetweenSets must be a positive number between 0 and 600 seconds"),
    "maxHeartRate": (60, 220, False, "maxHeartRate must be a positive number between 60 and 220 bpm"),
    # Régularité
    "workoutStreak": (0, 10000, True, "workoutStreak must be a positive integer between 0 and 10000"),
    "totalWorkouts": (0, 100000, True, "totalWorkouts must be a positive integer between 0 and 100000"),
    "daysSinceStart": (0, 36500, True, "daysSinceStart must be a positive integer between 0 and 36500"),
    "missedWorkouts": (0, 100000, True, "missedWorkouts must be a positive integer between 0 and 100000"),
    "workoutFrequency": (0, 7, False, "workoutFrequency must be a positive number between 0 and 7 workouts per week"),
    # Métriques supplémentaires
    "caloriesBurned": (0, 10000, False, "caloriesBurned must be a positive number between 0 and 10000"),
    "workoutIntensity": (0, 10, False, "workoutIntensity must be a positive number between 0 and 10"),
    "workoutSatisfaction": (0, 10, False, "workoutSatisfaction must be a positive number between 0 and 10"),
}

HEART_RATE_SAMPLE_BOUNDS = (40, 220)
EXERCISE_LIST_FIELDS = ("strengthExercises", "enduranceExercises")
PROGRESS_LIFT_FIELDS = ("squat", "bench", "deadlift")

USER_ID_MAX_LENGTH = 128
USER_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")

DEFAULT_PAGE_LIMIT = 50
MAX_PAGE_LIMIT = 1000
WEIGHT_SUM_TOLERANCE = 0.01


@dataclass
class ValidationResult:
    """Résultat d'une validation : jamais levé, toujours retourné"""
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    data: Optional[Any] = None


# ---------------------------------------------------------------------------
# Conversions
# ---------------------------------------------------------------------------

def parse_float(value: Any) -> Optional[float]:
    """Convertit en float fini ; None si la conversion échoue (les booléens sont refusés)"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def parse_int(value: Any) -> Optional[int]:
    """Convertit en entier, les décimales sont tronquées (12.7 -> 12)"""
    number = parse_float(value)
    if number is None:
        return None
    return int(number)


def parse_datetime(value: Any) -> Optional[datetime]:
    """Convertit en datetime UTC.

    Accepte datetime, date, chaîne ISO 8601 ou timestamp epoch en millisecondes
    (format des clients JavaScript). Une date naïve est considérée comme UTC.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float)):
        try:
            parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _in_bounds(number: Optional[float], lower: float, upper: float) -> bool:
    return number is not None and lower <= number <= upper


# ---------------------------------------------------------------------------
# Métriques
# ---------------------------------------------------------------------------

def validate_metrics(metrics: Any, now: Optional[datetime] = None) -> ValidationResult:
    """Valide et assainit les métriques brutes d'un utilisateur.

    Args:
        metrics: Objet brut (non typé) reçu du client
        now: Instant de référence (dates futures, timestamp injecté)

    Returns:
        ValidationResult avec les données assainies si valide, la liste des erreurs sinon
    """
    now = now or utc_now()
    errors: List[str] = []
    sanitized: Dict[str, Any] = {}

    if not isinstance(metrics, Mapping):
        return ValidationResult(is_valid=False, errors=["Metrics data must be a valid object"])

    for name, (lower, upper, integer, message) in NUMERIC_BOUNDS.items():
        if name not in metrics:
            continue
        number = parse_int(metrics[name]) if integer else parse_float(metrics[name])
        if not _in_bounds(number, lower, upper):
            errors.append(message)
        else:
            sanitized[name] = number

    # Fréquence cardiaque : un seul échantillon invalide rejette tout le champ
    if "heartRateData" in metrics:
        samples = metrics["heartRateData"]
        if not isinstance(samples, (list, tuple)):
            errors.append("heartRateData must be an array")
        else:
            lower, upper = HEART_RATE_SAMPLE_BOUNDS
            valid_samples = [parse_float(sample) for sample in samples]
            valid_samples = [s for s in valid_samples if _in_bounds(s, lower, upper)]
            if len(valid_samples) != len(samples):
                errors.append("heartRateData contains invalid heart rate values")
            else:
                sanitized["heartRateData"] = valid_samples

    if "lastWorkoutDate" in metrics:
        workout_date = parse_datetime(metrics["lastWorkoutDate"])
        if workout_date is None:
            errors.append("lastWorkoutDate must be a valid date")
        elif workout_date > now:
            errors.append("lastWorkoutDate cannot be in the future")
        else:
            sanitized["lastWorkoutDate"] = workout_date

    # Listes d'exercices : les éléments invalides sont ignorés silencieusement
    for name in EXERCISE_LIST_FIELDS:
        if name not in metrics:
            continue
        exercises = metrics[name]
        if not isinstance(exercises, (list, tuple)):
            errors.append(f"{name} must be an array")
        else:
            sanitized[name] = [
                exercise.strip() for exercise in exercises
                if isinstance(exercise, str) and exercise.strip()
            ]

    if "customMetrics" in metrics:
        custom = metrics["customMetrics"]
        if not isinstance(custom, Mapping):
            errors.append("customMetrics must be an object")
        else:
            valid_custom = {}
            for key, value in custom.items():
                if not isinstance(key, str) or not key.strip():
                    continue
                number = parse_float(value)
                if number is not None and number >= 0:
                    valid_custom[key.strip()] = number
            sanitized["customMetrics"] = valid_custom

    if "timestamp" in metrics:
        timestamp = parse_datetime(metrics["timestamp"])
        if timestamp is None:
            errors.append("timestamp must be a valid date")
        else:
            sanitized["timestamp"] = timestamp
    else:
        sanitized["timestamp"] = now

    if "userId" in metrics:
        user_id = metrics["userId"]
        if not isinstance(user_id, str) or not user_id.strip():
            errors.append("userId must be a non-empty string")
        else:
            sanitized["userId"] = user_id.strip()

    if errors:
        logger.debug(f"Métriques invalides: {errors}")
        return ValidationResult(is_valid=False, errors=errors)
    return ValidationResult(is_valid=True, errors=[], data=sanitized)


def sanitize_data(data: Any, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Retire les valeurs None et garantit la présence d'un timestamp"""
    if not isinstance(data, Mapping):
        return {}
    sanitized = {key: value for key, value in data.items() if value is not None}
    if not sanitized.get("timestamp"):
        sanitized["timestamp"] = now or utc_now()
    return sanitized


# ---------------------------------------------------------------------------
# Identifiants, pondérations, pagination
# ---------------------------------------------------------------------------

def validate_user_id(user_id: Any) -> ValidationResult:
    """Valide le format d'un identifiant utilisateur"""
    errors = []

    if not user_id or not isinstance(user_id, str):
        errors.append("User ID must be a non-empty string")
    elif not user_id.strip():
        errors.append("User ID cannot be empty")
    elif len(user_id) > USER_ID_MAX_LENGTH:
        errors.append(f"User ID cannot exceed {USER_ID_MAX_LENGTH} characters")
    elif not USER_ID_PATTERN.match(user_id):
        errors.append("User ID can only contain letters, numbers, underscores, and hyphens")

    if errors:
        return ValidationResult(is_valid=False, errors=errors)
    return ValidationResult(is_valid=True, data=user_id.strip())


def validate_weights(weights: Any) -> ValidationResult:
    """Valide une configuration de pondérations.

    Les quatre clés sont requises, chacune dans [0, 1], et leur somme doit valoir
    1.0 à WEIGHT_SUM_TOLERANCE près.
    """
    errors = []

    if not isinstance(weights, Mapping):
        return ValidationResult(is_valid=False, errors=["Weights must be a valid object"])

    total = 0.0
    for category in SCORE_CATEGORIES:
        if category not in weights or weights[category] is None:
            errors.append(f"Missing required weight: {category}")
            continue
        value = parse_float(weights[category])
        if not _in_bounds(value, 0, 1):
            errors.append(f"{category} weight must be a number between 0 and 1")
        total += value or 0.0

    if abs(total - 1) > WEIGHT_SUM_TOLERANCE:
        errors.append("Weights must sum to 1.0")

    if errors:
        return ValidationResult(is_valid=False, errors=errors)
    return ValidationResult(
        is_valid=True,
        data=WeightConfiguration(**{c: parse_float(weights[c]) for c in SCORE_CATEGORIES}),
    )


def validate_pagination(params: Mapping) -> ValidationResult:
    """Valide limit/offset (valeurs par défaut : 50 et 0)"""
    errors = []
    sanitized = {"limit": DEFAULT_PAGE_LIMIT, "offset": 0}

    if params.get("limit") is not None:
        limit = parse_int(params["limit"])
        if limit is None or limit < 1 or limit > MAX_PAGE_LIMIT:
            errors.append(f"Limit must be a positive integer between 1 and {MAX_PAGE_LIMIT}")
        else:
            sanitized["limit"] = limit

    if params.get("offset") is not None:
        offset = parse_int(params["offset"])
        if offset is None or offset < 0:
            errors.append("Offset must be a non-negative integer")
        else:
            sanitized["offset"] = offset

    if errors:
        return ValidationResult(is_valid=False, errors=errors)
    return ValidationResult(is_valid=True, data=sanitized)


def validate_date_range(params: Mapping) -> ValidationResult:
    """Valide une plage de dates optionnelle (startDate <= endDate)"""
    errors = []
    sanitized = {}

    for name in ("startDate", "endDate"):
        if params.get(name) is None:
            continue
        parsed = parse_datetime(params[name])
        if parsed is None:
            errors.append(f"{name} must be a valid date")
        else:
            sanitized[name] = parsed

    if "startDate" in sanitized and "endDate" in sanitized and sanitized["startDate"] > sanitized["endDate"]:
        errors.append("startDate must be before endDate")

    if errors:
        return ValidationResult(is_valid=False, errors=errors)
    return ValidationResult(is_valid=True, data=sanitized)


def validate_progress_entry(entry: Any, now: Optional[datetime] = None) -> ValidationResult:
    """Valide une entrée de suivi de progression (date obligatoire, charges en kg)"""
    now = now or utc_now()
    errors = []
    sanitized: Dict[str, Any] = {}

    if not isinstance(entry, Mapping):
        return ValidationResult(is_valid=False, errors=["Progress entry must be a valid object"])

    if entry.get("date") is None:
        errors.append("date is required")
    else:
        entry_date = parse_datetime(entry["date"])
        if entry_date is None:
            errors.append("date must be a valid date")
        elif entry_date > now:
            errors.append("date cannot be in the future")
        else:
            sanitized["date"] = entry_date

    for name in PROGRESS_LIFT_FIELDS:
        if entry.get(name) is None:
            continue
        value = parse_float(entry[name])
        if not _in_bounds(value, 0, 10000):
            errors.append(f"{name} must be a positive number between 0 and 10000")
        else:
            sanitized[name] = value

    if entry.get("notes") is not None:
        if not isinstance(entry["notes"], str):
            errors.append("notes must be a string")
        elif entry["notes"].strip():
            sanitized["notes"] = entry["notes"].strip()

    if errors:
        return ValidationResult(is_valid=False, errors=errors)
    return ValidationResult(is_valid=True, data=sanitized)
