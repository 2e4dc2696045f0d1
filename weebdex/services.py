"""Resource services: one class per API area.

Each method only builds a path (and query string or body) and hands it to
ApiService; all behavior lives in the pipeline.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, Mapping

import httpx

from weebdex.api_service import ApiService
from weebdex.entities import (
    ApiClient,
    ApiClientData,
    ApiClientWithSecret,
    Author,
    AuthorData,
    Chapter,
    ChapterPartial,
    ChapterUpdate,
    Cover,
    CoverUpdate,
    CreateRelation,
    DeleteRelation,
    Group,
    GroupCreate,
    GroupUpdate,
    Manga,
    MangaAggregates,
    MangaPartial,
    RelatedManga,
    Statistics,
)
from weebdex.models import Credentials, DataResponse, PageResponse, WeebDexResponse


class TimeFrame(str, Enum):
    """Ranking window for the "top" listings."""

    TWENTY_FOUR_HOURS = "24h"
    SEVEN_DAYS = "7d"
    THIRTY_DAYS = "30d"


class FilterBuilder:
    """Collects query parameters.

    None values are skipped, sequences become repeated keys and booleans
    are sent as "true"/"false".
    """

    def __init__(self) -> None:
        self._params: list[tuple[str, str]] = []

    def add(self, key: str, value: Any) -> FilterBuilder:
        if value is None:
            return self
        if isinstance(value, (list, tuple, set)):
            for item in value:
                self.add(key, item)
            return self
        if isinstance(value, bool):
            self._params.append((key, "true" if value else "false"))
        elif isinstance(value, Enum):
            self._params.append((key, str(value.value)))
        else:
            self._params.append((key, str(value)))
        return self

    def add_all(self, values: Mapping[str, Any] | None) -> FilterBuilder:
        for key, value in (values or {}).items():
            self.add(key, value)
        return self

    def build(self) -> str:
        return str(httpx.QueryParams(self._params))


def _with_query(path: str, query: str) -> str:
    return f"{path}?{query}" if query else path


class AuthorService:
    def __init__(self, api: ApiService) -> None:
        self._api = api

    async def list(
        self,
        name: str | None = None,
        ids: Iterable[str] | None = None,
        limit: int = 100,
        page: int = 1,
    ) -> PageResponse[Author]:
        query = (
            FilterBuilder()
            .add("name", name)
            .add("ids", list(ids or []))
            .add("limit", limit)
            .add("page", page)
            .build()
        )
        return await self._api.get(_with_query("/author", query), PageResponse[Author])

    async def get(self, id: str) -> DataResponse[Author]:
        return await self._api.get(f"/author/{id}", DataResponse[Author])

    async def create(
        self, data: AuthorData, credentials: Credentials | None = None
    ) -> DataResponse[Author]:
        return await self._api.post(
            "/author", DataResponse[Author],
            body=data, auth_required=True, credentials=credentials,
        )

    async def update(
        self, id: str, data: AuthorData, credentials: Credentials | None = None
    ) -> DataResponse[Author]:
        return await self._api.put(
            f"/author/{id}", DataResponse[Author],
            body=data, auth_required=True, credentials=credentials,
        )


class ChapterService:
    def __init__(self, api: ApiService) -> None:
        self._api = api

    async def get(self, id: str) -> DataResponse[Chapter]:
        return await self._api.get(f"/chapter/{id}", DataResponse[Chapter])

    async def search(self, filters: Mapping[str, Any] | None = None) -> PageResponse[ChapterPartial]:
        query = FilterBuilder().add_all(filters).build()
        return await self._api.get(_with_query("/chapter", query), PageResponse[ChapterPartial])

    async def updates(self, filters: Mapping[str, Any] | None = None) -> PageResponse[ChapterPartial]:
        query = FilterBuilder().add_all(filters).build()
        return await self._api.get(
            _with_query("/chapter/updates", query), PageResponse[ChapterPartial]
        )

    async def feed(self, filters: Mapping[str, Any] | None = None) -> PageResponse[ChapterPartial]:
        query = FilterBuilder().add_all(filters).build()
        return await self._api.get(
            _with_query("/chapter/feed", query), PageResponse[ChapterPartial]
        )

    async def top(
        self,
        content_rating: Iterable[str] | None = None,
        limit: int = 100,
        page: int = 1,
        time: TimeFrame = TimeFrame.SEVEN_DAYS,
    ) -> PageResponse[ChapterPartial]:
        query = (
            FilterBuilder()
            .add("limit", limit)
            .add("page", page)
            .add("time", time)
            .add("contentRating", list(content_rating or []))
            .build()
        )
        return await self._api.get(_with_query("/chapter/top", query), PageResponse[ChapterPartial])

    async def update(
        self, id: str, update: ChapterUpdate, credentials: Credentials | None = None
    ) -> DataResponse[Chapter]:
        return await self._api.put(
            f"/chapter/{id}", DataResponse[Chapter],
            body=update, auth_required=True, credentials=credentials,
        )

    async def delete(self, id: str, credentials: Credentials | None = None) -> WeebDexResponse:
        return await self._api.delete(
            f"/chapter/{id}", auth_required=True, credentials=credentials
        )


class MangaService:
    def __init__(self, api: ApiService) -> None:
        self._api = api

    async def search(self, filters: Mapping[str, Any] | None = None) -> PageResponse[MangaPartial]:
        query = FilterBuilder().add_all(filters).build()
        return await self._api.get(_with_query("/manga", query), PageResponse[MangaPartial])

    async def random(self, filters: Mapping[str, Any] | None = None) -> DataResponse[Manga]:
        query = FilterBuilder().add_all(filters).build()
        return await self._api.get(_with_query("/manga/random", query), DataResponse[Manga])

    async def get(self, id: str) -> DataResponse[Manga]:
        return await self._api.get(f"/manga/{id}", DataResponse[Manga])

    async def relations(self, id: str) -> DataResponse[list[RelatedManga]]:
        return await self._api.get(f"/manga/{id}/relations", DataResponse[list[RelatedManga]])

    async def create_relation(
        self, id: str, relation: CreateRelation, credentials: Credentials | None = None
    ) -> DataResponse[RelatedManga]:
        return await self._api.post(
            f"/manga/{id}/relations", DataResponse[RelatedManga],
            body=relation, auth_required=True, credentials=credentials,
        )

    async def delete_relation(
        self, id: str, related_id: str, credentials: Credentials | None = None
    ) -> WeebDexResponse:
        return await self._api.delete(
            f"/manga/{id}/relations",
            body=DeleteRelation(related_id=related_id),
            auth_required=True,
            credentials=credentials,
        )

    async def top(
        self,
        content_rating: Iterable[str] | None = None,
        limit: int = 100,
        page: int = 1,
        time: TimeFrame = TimeFrame.SEVEN_DAYS,
        rank_views: bool = True,
    ) -> PageResponse[MangaPartial]:
        query = (
            FilterBuilder()
            .add("limit", limit)
            .add("page", page)
            .add("time", time)
            .add("contentRating", list(content_rating or []))
            .add("rank", "views" if rank_views else "read")
            .build()
        )
        return await self._api.get(_with_query("/manga/top", query), PageResponse[MangaPartial])

    async def recommendations(self, id: str) -> PageResponse[MangaPartial]:
        return await self._api.get(
            f"/manga/{id}/recommendations", PageResponse[MangaPartial]
        )

    async def chapters(
        self, id: str, filters: Mapping[str, Any] | None = None
    ) -> PageResponse[ChapterPartial]:
        query = FilterBuilder().add_all(filters).build()
        return await self._api.get(
            _with_query(f"/manga/{id}/chapters", query), PageResponse[ChapterPartial]
        )

    async def aggregate(
        self, id: str, languages: Iterable[str] | None = None
    ) -> DataResponse[MangaAggregates]:
        query = FilterBuilder().add("tlang", list(languages or [])).build()
        return await self._api.get(
            _with_query(f"/manga/{id}/aggregate", query), DataResponse[MangaAggregates]
        )


class StatisticsService:
    def __init__(self, api: ApiService) -> None:
        self._api = api

    async def chapter(self, id: str) -> DataResponse[Statistics]:
        return await self._api.get(f"/chapter/{id}/statistics", DataResponse[Statistics])

    async def group(self, id: str) -> DataResponse[Statistics]:
        return await self._api.get(f"/group/{id}/statistics", DataResponse[Statistics])

    async def manga(self, id: str) -> DataResponse[Statistics]:
        return await self._api.get(f"/manga/{id}/statistics", DataResponse[Statistics])

    async def user(self, id: str) -> DataResponse[Statistics]:
        return await self._api.get(f"/user/{id}/statistics", DataResponse[Statistics])


class ApiClientService:
    """Management of the caller's own API clients. Every call needs auth."""

    def __init__(self, api: ApiService) -> None:
        self._api = api

    async def list(self, credentials: Credentials | None = None) -> DataResponse[list[ApiClient]]:
        return await self._api.get(
            "/client", DataResponse[list[ApiClient]],
            auth_required=True, credentials=credentials,
        )

    async def create(
        self, name: str, credentials: Credentials | None = None
    ) -> DataResponse[ApiClientWithSecret]:
        return await self._api.post(
            "/client", DataResponse[ApiClientWithSecret],
            body=ApiClientData(name=name), auth_required=True, credentials=credentials,
        )

    async def update(
        self, id: str, name: str, credentials: Credentials | None = None
    ) -> DataResponse[ApiClient]:
        return await self._api.put(
            f"/client/{id}", DataResponse[ApiClient],
            body=ApiClientData(name=name), auth_required=True, credentials=credentials,
        )

    async def delete(self, id: str, credentials: Credentials | None = None) -> WeebDexResponse:
        return await self._api.delete(
            f"/client/{id}", auth_required=True, credentials=credentials
        )

    async def regenerate(
        self, id: str, credentials: Credentials | None = None
    ) -> DataResponse[ApiClientWithSecret]:
        return await self._api.post(
            f"/client/{id}/regenerate", DataResponse[ApiClientWithSecret],
            auth_required=True, credentials=credentials,
        )


class CoverService:
    def __init__(self, api: ApiService) -> None:
        self._api = api

    async def get(self, id: str) -> DataResponse[Cover]:
        return await self._api.get(f"/cover/{id}", DataResponse[Cover])

    async def for_manga(self, id: str) -> DataResponse[list[Cover]]:
        return await self._api.get(f"/manga/{id}/covers", DataResponse[list[Cover]])

    async def update(
        self, id: str, data: CoverUpdate, credentials: Credentials | None = None
    ) -> DataResponse[Cover]:
        return await self._api.put(
            f"/cover/{id}", DataResponse[Cover],
            body=data, auth_required=True, credentials=credentials,
        )

    async def delete(self, id: str, credentials: Credentials | None = None) -> WeebDexResponse:
        return await self._api.delete(
            f"/cover/{id}", auth_required=True, credentials=credentials
        )


class GroupService:
    def __init__(self, api: ApiService, statistics: StatisticsService) -> None:
        self._api = api
        self._statistics = statistics

    async def get(self, id: str) -> DataResponse[Group]:
        return await self._api.get(f"/group/{id}", DataResponse[Group])

    async def list(
        self,
        ids: Iterable[str] | None = None,
        name: str | None = None,
        limit: int = 100,
        page: int = 1,
    ) -> PageResponse[Group]:
        query = (
            FilterBuilder()
            .add("id", list(ids or []))
            .add("limit", limit)
            .add("page", page)
            .add("name", name)
            .build()
        )
        return await self._api.get(_with_query("/group", query), PageResponse[Group])

    async def create(
        self, group: GroupCreate, credentials: Credentials | None = None
    ) -> DataResponse[Group]:
        return await self._api.post(
            "/group", DataResponse[Group],
            body=group, auth_required=True, credentials=credentials,
        )

    async def update(
        self, id: str, update: GroupUpdate, credentials: Credentials | None = None
    ) -> DataResponse[Group]:
        return await self._api.put(
            f"/group/{id}", DataResponse[Group],
            body=update, auth_required=True, credentials=credentials,
        )

    async def statistics(self, id: str) -> DataResponse[Statistics]:
        return await self._statistics.group(id)
