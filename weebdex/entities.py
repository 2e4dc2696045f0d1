"""Payload models for WeebDex resources.

Only the commonly used fields are declared. Every model allows extra fields,
so anything else the API sends is kept on the instance.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class WdModel(BaseModel):
    """Base for API payloads: tolerant of unknown fields."""

    model_config = ConfigDict(extra="allow")


class Entity(WdModel):
    id: str = ""
    name: str = ""


# =============================================================================
# Authors
# =============================================================================


class AuthorData(WdModel):
    """Editable author fields (also the create/update request body)."""

    name: str | None = None
    description: str | None = None
    locked: bool | None = None
    version: int = 0
    fanbox: str | None = None
    fantia: str | None = None
    pixiv: str | None = None
    skeb: str | None = None
    twitter: str | None = None
    youtube: str | None = None
    website: str | None = None


class Author(AuthorData):
    id: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None


# =============================================================================
# API Clients
# =============================================================================


class ApiClientData(WdModel):
    name: str = ""


class ApiClient(Entity):
    created_at: datetime | None = None
    updated_at: datetime | None = None
    version: int = 0


class ApiClientWithSecret(ApiClient):
    """Returned only when a client is created or its secret regenerated."""

    key: str = ""


# =============================================================================
# Manga
# =============================================================================


class MangaPartial(WdModel):
    id: str = ""
    title: str = ""
    year: int | None = None
    language: str | None = None
    demographic: str | None = None
    status: str | None = None
    content_rating: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    relationships: dict[str, Any] | None = None


class Manga(MangaPartial):
    alt_titles: dict[str, list[str]] | None = None
    description: str | None = None
    version: int = 0
    state: str | None = None


class RelatedManga(MangaPartial):
    type: str | None = None


class CreateRelation(WdModel):
    related_id: str
    type: str


class DeleteRelation(WdModel):
    related_id: str


class MangaAggregates(WdModel):
    languages: list[str] = Field(default_factory=list)
    groups: list[Entity] = Field(default_factory=list)
    chapters: list[dict[str, Any]] = Field(default_factory=list)


# =============================================================================
# Chapters
# =============================================================================


class ChapterPartial(WdModel):
    id: str = ""
    chapter: str | None = None
    volume: str | None = None
    title: str | None = None
    language: str | None = None
    version: int = 0
    state: str | None = None
    is_unavailable: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None
    published_at: datetime | None = None
    deleted_at: datetime | None = None
    relationships: dict[str, Any] | None = None


class Chapter(ChapterPartial):
    data: list[dict[str, Any]] | None = None
    data_optimized: list[dict[str, Any]] | None = None
    node: str | None = None


class ChapterUpdate(WdModel):
    chapter: str | None = None
    groups: list[str] | None = None
    language: str | None = None
    title: str | None = None
    volume: str | None = None
    version: int = 0


# =============================================================================
# Covers
# =============================================================================


class Cover(WdModel):
    id: str = ""
    ext: str | None = None
    description: str | None = None
    language: str | None = None
    volume: str | None = None
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None
    relationships: dict[str, Any] | None = None


class CoverUpdate(WdModel):
    description: str | None = None
    language: str | None = None
    main: bool | None = None
    version: int = 0
    volume: str | None = None


# =============================================================================
# Groups
# =============================================================================


class Group(Entity):
    description: str | None = None
    version: int = 0
    discord: str | None = None
    twitter: str | None = None
    website: str | None = None
    mangaupdates: str | None = None
    content_email: str | None = None
    inactive: bool = False
    locked: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None
    relationships: dict[str, Any] | None = None


class GroupCreate(WdModel):
    name: str
    description: str | None = None
    discord: str | None = None
    twitter: str | None = None
    website: str | None = None


class GroupUpdate(GroupCreate):
    version: int = 0
    inactive: bool | None = None


# =============================================================================
# Statistics
# =============================================================================


class Statistics(WdModel):
    """Rating/view counters; the exact fields differ per resource type."""

    views: int | None = None
    follows: int | None = None
    comments: dict[str, Any] | None = None
    rating: dict[str, Any] | None = None
