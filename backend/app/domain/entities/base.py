"""
Base commune des documents persistés - Domain Layer
Attributs snake_case en Python, clés camelCase dans le document store
"""
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    """Horodatage UTC timezone-aware"""
    return datetime.now(timezone.utc)


class DocumentModel(BaseModel):
    """Modèle de base pour tous les documents du store"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_document(self, exclude_none: bool = False) -> dict:
        """Sérialise le modèle en dict JSON-compatible (clés camelCase)"""
        return self.model_dump(mode="json", by_alias=True, exclude_none=exclude_none)
