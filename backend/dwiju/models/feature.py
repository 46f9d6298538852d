"""Admin-curated feature catalog."""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

CATEGORIES = (
    "Ask Dwiju",
    "Dwiju Teacher",
    "Dwiju Doctor",
    "Dwiju Supreme Judge",
    "Dwiju Farmer",
    "Dwiju Business",
    "Dwiju Entertainment",
    "Dwiju Home",
    "Dwiju Travel",
    "Dwiju Security",
    "Dwiju Developer",
    "Dwiju Research",
    "Dwiju Social",
    "Dwiju Advanced",
)


class Feature(SQLModel, table=True):
    # Issued by the catalog service as max(id) + 1, never by the database
    id: int = Field(primary_key=True, sa_column_kwargs={"autoincrement": False})
    title: str
    description: str
    category: str = Field(index=True)
    tags: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    is_active: bool = Field(default=True, index=True)
    is_locked: bool = Field(default=False)
    priority: int = Field(default=0)
    version: str = Field(default="1.0.0")
    created_by: Optional[int] = Field(default=None, foreign_key="account.id")
    updated_by: Optional[int] = Field(default=None, foreign_key="account.id")
    # "metadata" is reserved on SQLModel classes
    extra: dict = Field(default_factory=dict, sa_column=Column("metadata", JSON))
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def feature_to_dict(feature: Feature) -> dict:
    return {
        "id": feature.id,
        "title": feature.title,
        "description": feature.description,
        "category": feature.category,
        "tags": feature.tags or [],
        "isActive": feature.is_active,
        "isLocked": feature.is_locked,
        "priority": feature.priority,
        "version": feature.version,
        "createdBy": feature.created_by,
        "updatedBy": feature.updated_by,
        "metadata": feature.extra or {},
        "createdAt": feature.created_at.isoformat(),
        "updatedAt": feature.updated_at.isoformat(),
    }
