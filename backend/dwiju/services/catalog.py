"""Feature catalog: admin-curated capability descriptors with monotonically issued ids."""

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import String, cast, func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, or_, select

from dwiju.core.errors import DuplicateKeyError, InvalidInputError, NotFoundError
from dwiju.models.feature import CATEGORIES, Feature

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    "id": Feature.id,
    "title": Feature.title,
    "category": Feature.category,
    "priority": Feature.priority,
    "createdAt": Feature.created_at,
    "updatedAt": Feature.updated_at,
}

# API field -> model attribute, for partial updates
UPDATABLE_FIELDS = {
    "title": "title",
    "description": "description",
    "category": "category",
    "tags": "tags",
    "isActive": "is_active",
    "isLocked": "is_locked",
    "priority": "priority",
    "version": "version",
    "metadata": "extra",
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _check_category(category: str) -> None:
    if category not in CATEGORIES:
        raise InvalidInputError(f"Unknown category: {category}", details={"allowed": list(CATEGORIES)})


def _normalize_tags(tags: Any) -> list[str]:
    if tags is None:
        return []
    if isinstance(tags, str):
        tags = [tags]
    if not isinstance(tags, (list, tuple)):
        raise InvalidInputError("tags must be a string or a list of strings")
    return [str(t).strip() for t in tags if str(t).strip()]


def next_feature_id(session: Session) -> int:
    current = session.exec(select(func.max(Feature.id))).one()
    return (current or 0) + 1


def get_feature(session: Session, feature_id: int) -> Feature:
    feature = session.get(Feature, feature_id)
    if feature is None:
        raise NotFoundError("Feature not found")
    return feature


def list_features(
    session: Session,
    page: int = 1,
    limit: int = 20,
    category: str | None = None,
    search: str | None = None,
    active: str = "true",
    sort_by: str = "id",
    sort_order: str = "asc",
) -> tuple[list[Feature], int]:
    if page < 1 or limit < 1:
        raise InvalidInputError("page and limit must be positive")

    filters = []
    if category:
        filters.append(Feature.category == category)
    if active != "all":
        filters.append(Feature.is_active == (active == "true"))
    if search:
        pattern = f"%{search.lower()}%"
        filters.append(
            or_(
                func.lower(Feature.title).like(pattern),
                func.lower(Feature.description).like(pattern),
                func.lower(cast(Feature.tags, String)).like(pattern),
            )
        )

    sort_column = SORTABLE_FIELDS.get(sort_by, Feature.id)
    order = sort_column.desc() if sort_order == "desc" else sort_column.asc()  # type: ignore[union-attr]

    total = session.exec(select(func.count()).select_from(Feature).where(*filters)).one()
    features = session.exec(
        select(Feature).where(*filters).order_by(order).offset((page - 1) * limit).limit(limit)
    ).all()
    return list(features), total


def features_by_category(session: Session) -> dict[str, list[Feature]]:
    features = session.exec(
        select(Feature).where(Feature.is_active == True).order_by(Feature.category, Feature.id)  # noqa: E712
    ).all()
    grouped: dict[str, list[Feature]] = {}
    for feature in features:
        grouped.setdefault(feature.category, []).append(feature)
    return grouped


def create_feature(
    session: Session,
    title: str,
    description: str,
    category: str,
    tags: Any = None,
    priority: int = 0,
    metadata: dict | None = None,
    created_by: int | None = None,
    feature_id: int | None = None,
) -> Feature:
    if not title or not description or not category:
        raise InvalidInputError("Title, description, and category are required")
    _check_category(category)

    feature = Feature(
        id=feature_id if feature_id is not None else next_feature_id(session),
        title=title.strip(),
        description=description,
        category=category,
        tags=_normalize_tags(tags),
        priority=priority or 0,
        extra=metadata or {},
        created_by=created_by,
        updated_by=created_by,
    )
    session.add(feature)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise DuplicateKeyError("id", "Feature ID already exists")
    session.refresh(feature)
    logger.info(f"Created feature {feature.id} in {category}")
    return feature


def update_feature(session: Session, feature_id: int, changes: dict[str, Any], updated_by: int | None) -> Feature:
    """Apply a partial update. ``id`` and the creation fields are never changed."""
    feature = get_feature(session, feature_id)
    for key, value in changes.items():
        attr = UPDATABLE_FIELDS.get(key)
        if attr is None:
            continue
        if value is None:
            raise InvalidInputError(f"{key} must not be null")
        if attr == "category":
            _check_category(value)
        if attr == "tags":
            value = _normalize_tags(value)
        if attr in ("title", "description") and not value:
            raise InvalidInputError(f"{key} must not be empty")
        setattr(feature, attr, value)

    feature.updated_by = updated_by
    feature.updated_at = _now()
    session.add(feature)
    session.commit()
    session.refresh(feature)
    return feature


def deactivate_feature(session: Session, feature_id: int, updated_by: int | None) -> Feature:
    feature = get_feature(session, feature_id)
    feature.is_active = False
    feature.updated_by = updated_by
    feature.updated_at = _now()
    session.add(feature)
    session.commit()
    session.refresh(feature)
    return feature


def delete_feature(session: Session, feature_id: int) -> None:
    feature = get_feature(session, feature_id)
    session.delete(feature)
    session.commit()
    logger.info(f"Permanently deleted feature {feature_id}")


def bulk_import(session: Session, items: list[dict], overwrite: bool, imported_by: int | None) -> dict:
    results: dict[str, Any] = {"imported": 0, "skipped": 0, "errors": []}

    for data in items:
        raw_id = data.get("id")
        title, description, category = data.get("title"), data.get("description"), data.get("category")
        if not raw_id or not title or not description or not category:
            results["errors"].append(
                {"feature": data, "error": "Missing required fields (id, title, description, category)"}
            )
            continue

        try:
            feature_id = int(raw_id)
            if not all(isinstance(v, str) for v in (title, description, category)):
                raise InvalidInputError("title, description and category must be strings")
            _check_category(category)
            tags = _normalize_tags(data.get("tags"))
            priority = int(data.get("priority") or 0)
            metadata = data.get("metadata") or {}
            if not isinstance(metadata, dict):
                raise InvalidInputError("metadata must be an object")
            existing = session.get(Feature, feature_id)
            if existing is not None and not overwrite:
                results["skipped"] += 1
                continue

            if existing is not None:
                existing.title = title
                existing.description = description
                existing.category = category
                existing.tags = tags
                existing.priority = priority
                existing.extra = metadata
                existing.updated_by = imported_by
                existing.updated_at = _now()
                session.add(existing)
                session.commit()
            else:
                create_feature(
                    session,
                    title=title,
                    description=description,
                    category=category,
                    tags=tags,
                    priority=priority,
                    metadata=metadata,
                    created_by=imported_by,
                    feature_id=feature_id,
                )
            results["imported"] += 1
        except (ValueError, TypeError, InvalidInputError, DuplicateKeyError) as e:
            results["errors"].append({"feature": data, "error": str(e)})

    logger.info(f"Bulk import: {results['imported']} imported, {results['skipped']} skipped")
    return results
