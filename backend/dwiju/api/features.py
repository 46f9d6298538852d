"""REST API for the feature catalog. Reads are public, writes need admin or moderator."""

import math
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session

from dwiju.core.database import get_session
from dwiju.core.errors import InvalidInputError
from dwiju.core.security import TokenData, require_admin, require_moderator
from dwiju.models.feature import feature_to_dict
from dwiju.services import catalog

router = APIRouter()


class FeatureCreate(BaseModel):
    title: str = ""
    description: str = ""
    category: str = ""
    tags: list[str] | str = []
    priority: int = 0
    metadata: dict[str, Any] = {}


class FeatureUpdate(BaseModel):
    """Partial update. Unknown keys, including `id`, are ignored."""

    model_config = ConfigDict(populate_by_name=True)

    title: str | None = None
    description: str | None = None
    category: str | None = None
    tags: list[str] | str | None = None
    is_active: bool | None = Field(default=None, alias="isActive")
    is_locked: bool | None = Field(default=None, alias="isLocked")
    priority: int | None = None
    version: str | None = None
    metadata: dict[str, Any] | None = None


class BulkImport(BaseModel):
    features: list[dict[str, Any]] = []
    overwrite: bool = False


@router.get("")
async def list_features(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    category: str | None = None,
    search: str | None = None,
    active: str = "true",
    sortBy: str = "id",
    sortOrder: str = "asc",
    session: Session = Depends(get_session),
):
    features, total = catalog.list_features(
        session,
        page=page,
        limit=limit,
        category=category,
        search=search,
        active=active,
        sort_by=sortBy,
        sort_order=sortOrder,
    )
    return {
        "success": True,
        "features": [feature_to_dict(f) for f in features],
        "pagination": {
            "current": page,
            "pages": math.ceil(total / limit),
            "total": total,
            "limit": limit,
        },
        "filters": {"category": category, "search": search, "active": active},
    }


@router.get("/categories")
async def list_categories(session: Session = Depends(get_session)):
    grouped = catalog.features_by_category(session)
    return {
        "success": True,
        "categories": {
            name: {
                "name": name,
                "count": len(features),
                "features": [
                    {"id": f.id, "title": f.title, "description": f.description} for f in features
                ],
            }
            for name, features in grouped.items()
        },
        "totalCategories": len(grouped),
    }


@router.get("/{feature_id}")
async def get_feature(feature_id: int, session: Session = Depends(get_session)):
    return {"success": True, "feature": feature_to_dict(catalog.get_feature(session, feature_id))}


@router.post("", status_code=201)
async def create_feature(
    body: FeatureCreate,
    admin: TokenData = Depends(require_admin),
    session: Session = Depends(get_session),
):
    feature = catalog.create_feature(
        session,
        title=body.title,
        description=body.description,
        category=body.category,
        tags=body.tags,
        priority=body.priority,
        metadata=body.metadata,
        created_by=admin.user_id,
    )
    return {"success": True, "message": "Feature created successfully", "feature": feature_to_dict(feature)}


@router.put("/{feature_id}")
async def update_feature(
    feature_id: int,
    changes: FeatureUpdate,
    user: TokenData = Depends(require_moderator),
    session: Session = Depends(get_session),
):
    feature = catalog.update_feature(
        session, feature_id, changes.model_dump(exclude_unset=True, by_alias=True), updated_by=user.user_id
    )
    return {"success": True, "message": "Feature updated successfully", "feature": feature_to_dict(feature)}


@router.delete("/{feature_id}")
async def delete_feature(
    feature_id: int,
    permanent: bool = False,
    admin: TokenData = Depends(require_admin),
    session: Session = Depends(get_session),
):
    if permanent:
        catalog.delete_feature(session, feature_id)
        return {"success": True, "message": "Feature permanently deleted"}

    feature = catalog.deactivate_feature(session, feature_id, updated_by=admin.user_id)
    return {"success": True, "message": "Feature deactivated successfully", "feature": feature_to_dict(feature)}


@router.post("/bulk-import")
async def bulk_import(
    body: BulkImport,
    admin: TokenData = Depends(require_admin),
    session: Session = Depends(get_session),
):
    if not body.features:
        raise InvalidInputError("Features array is required")
    results = catalog.bulk_import(session, body.features, body.overwrite, imported_by=admin.user_id)
    return {"success": True, "message": "Bulk import completed", "results": results}
