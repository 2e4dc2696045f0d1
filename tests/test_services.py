"""Tests for the resource services and the WeebDex composition root.

Tests cover:
- FilterBuilder query encoding
- Paths, methods, query strings and bodies produced by each service
- Auth-only endpoints without credentials
- Client ownership and config-file wiring in WeebDex
"""

import json

import httpx
import pytest

from tests.conftest import TransportSpy, build_weebdex, json_response
from weebdex.client import WeebDex
from weebdex.entities import AuthorData, ChapterUpdate, CoverUpdate, GroupCreate
from weebdex.errors import AuthenticationRequiredError
from weebdex.models import Credentials
from weebdex.services import FilterBuilder, TimeFrame

ROOT = "https://api.weebdex.org"
COOKIE = Credentials.cookie("session=1")


def page_body(items: list[dict], total: int = 0) -> dict:
    return {"data": items, "limit": 10, "page": 1, "total": total}


class TestFilterBuilder:
    def test_empty(self):
        assert FilterBuilder().build() == ""

    def test_skips_none(self):
        assert FilterBuilder().add("a", None).add("b", 1).build() == "b=1"

    def test_repeats_list_values(self):
        query = FilterBuilder().add("tag", ["x", "y"]).build()
        assert query == "tag=x&tag=y"

    def test_empty_list_adds_nothing(self):
        assert FilterBuilder().add("tag", []).build() == ""

    def test_lowercases_booleans(self):
        query = FilterBuilder().add("a", True).add("b", False).build()
        assert query == "a=true&b=false"

    def test_enum_value(self):
        assert FilterBuilder().add("time", TimeFrame.THIRTY_DAYS).build() == "time=30d"

    def test_add_all_keeps_order(self):
        query = FilterBuilder().add_all({"limit": 5, "title": "one piece"}).build()
        assert query == "limit=5&title=one+piece"


class TestAuthorService:
    @pytest.mark.anyio
    async def test_get(self):
        spy = TransportSpy(lambda r: json_response(200, {"data": {"id": "a1", "name": "Oda"}}))
        wd = build_weebdex(spy)

        result = await wd.authors.get("a1")

        assert str(spy.last.url) == f"{ROOT}/author/a1"
        assert result.data.name == "Oda"

    @pytest.mark.anyio
    async def test_list(self):
        spy = TransportSpy(lambda r: json_response(200, page_body([{"id": "a1"}], total=25)))
        wd = build_weebdex(spy)

        result = await wd.authors.list(name="Oda", ids=["a1", "a2"], limit=10)

        assert str(spy.last.url) == f"{ROOT}/author?name=Oda&ids=a1&ids=a2&limit=10&page=1"
        assert result.data[0].id == "a1"
        assert result.total_pages == 3

    @pytest.mark.anyio
    async def test_create_requires_auth(self):
        spy = TransportSpy()
        wd = build_weebdex(spy)

        result = await wd.authors.create(AuthorData(name="New"))

        assert spy.requests == []
        assert isinstance(result.metadata.response.exception, AuthenticationRequiredError)

    @pytest.mark.anyio
    async def test_update(self):
        spy = TransportSpy()
        wd = build_weebdex(spy)

        await wd.authors.update("a1", AuthorData(name="Renamed", version=2), credentials=COOKIE)

        assert spy.last.method == "PUT"
        assert str(spy.last.url) == f"{ROOT}/author/a1"
        assert json.loads(spy.last.content) == {"name": "Renamed", "version": 2}


class TestChapterService:
    @pytest.mark.anyio
    async def test_search_with_filters(self):
        spy = TransportSpy(lambda r: json_response(200, page_body([])))
        wd = build_weebdex(spy)

        await wd.chapters.search({"authors": ["dzzri33r3v"], "limit": 5, "lang": None})

        assert str(spy.last.url) == f"{ROOT}/chapter?authors=dzzri33r3v&limit=5"

    @pytest.mark.anyio
    @pytest.mark.parametrize(
        "method,path",
        [("updates", "/chapter/updates"), ("feed", "/chapter/feed")],
    )
    async def test_listing_paths(self, method, path):
        spy = TransportSpy(lambda r: json_response(200, page_body([])))
        wd = build_weebdex(spy)

        await getattr(wd.chapters, method)()

        assert str(spy.last.url) == f"{ROOT}{path}"

    @pytest.mark.anyio
    async def test_top(self):
        spy = TransportSpy(lambda r: json_response(200, page_body([])))
        wd = build_weebdex(spy)

        await wd.chapters.top(content_rating=["safe", "suggestive"], time=TimeFrame.TWENTY_FOUR_HOURS)

        assert str(spy.last.url) == (
            f"{ROOT}/chapter/top?limit=100&page=1&time=24h"
            "&contentRating=safe&contentRating=suggestive"
        )

    @pytest.mark.anyio
    async def test_update_and_delete(self):
        spy = TransportSpy()
        wd = build_weebdex(spy)

        await wd.chapters.update("c1", ChapterUpdate(title="New", version=3), credentials=COOKIE)
        await wd.chapters.delete("c1", credentials=COOKIE)

        assert [(r.method, r.url.path) for r in spy.requests] == [
            ("PUT", "/chapter/c1"),
            ("DELETE", "/chapter/c1"),
        ]
        assert json.loads(spy.requests[0].content) == {"title": "New", "version": 3}


class TestMangaService:
    @pytest.mark.anyio
    async def test_get(self):
        spy = TransportSpy(lambda r: json_response(200, {"data": {"id": "m1", "title": "T"}}))
        wd = build_weebdex(spy)

        result = await wd.manga.get("m1")

        assert result.data.title == "T"

    @pytest.mark.anyio
    async def test_top_defaults(self):
        spy = TransportSpy(lambda r: json_response(200, page_body([])))
        wd = build_weebdex(spy)

        await wd.manga.top()

        assert str(spy.last.url) == f"{ROOT}/manga/top?limit=100&page=1&time=7d&rank=views"

    @pytest.mark.anyio
    async def test_top_by_reads(self):
        spy = TransportSpy(lambda r: json_response(200, page_body([])))
        wd = build_weebdex(spy)

        await wd.manga.top(limit=5, page=2, time=TimeFrame.THIRTY_DAYS, rank_views=False)

        assert str(spy.last.url) == f"{ROOT}/manga/top?limit=5&page=2&time=30d&rank=read"

    @pytest.mark.anyio
    async def test_random(self):
        spy = TransportSpy(lambda r: json_response(200, {"data": {"id": "m9"}}))
        wd = build_weebdex(spy)

        result = await wd.manga.random({"contentRating": ["safe"]})

        assert str(spy.last.url) == f"{ROOT}/manga/random?contentRating=safe"
        assert result.data.id == "m9"

    @pytest.mark.anyio
    async def test_relations(self):
        spy = TransportSpy(
            lambda r: json_response(200, {"data": [{"id": "m2", "type": "sequel"}]})
        )
        wd = build_weebdex(spy)

        result = await wd.manga.relations("m1")

        assert spy.last.url.path == "/manga/m1/relations"
        assert result.data[0].type == "sequel"

    @pytest.mark.anyio
    async def test_delete_relation_sends_body(self):
        spy = TransportSpy()
        wd = build_weebdex(spy)

        await wd.manga.delete_relation("m1", "m2", credentials=COOKIE)

        assert spy.last.method == "DELETE"
        assert spy.last.url.path == "/manga/m1/relations"
        assert json.loads(spy.last.content) == {"related_id": "m2"}

    @pytest.mark.anyio
    async def test_chapters_and_aggregate(self):
        spy = TransportSpy(lambda r: json_response(200, {"data": []}))
        wd = build_weebdex(spy)

        await wd.manga.chapters("m1", {"limit": 20})
        await wd.manga.aggregate("m1", languages=["en", "es"])
        await wd.manga.recommendations("m1")

        assert [str(r.url) for r in spy.requests] == [
            f"{ROOT}/manga/m1/chapters?limit=20",
            f"{ROOT}/manga/m1/aggregate?tlang=en&tlang=es",
            f"{ROOT}/manga/m1/recommendations",
        ]


class TestStatisticsService:
    @pytest.mark.anyio
    @pytest.mark.parametrize("kind", ["chapter", "group", "manga", "user"])
    async def test_paths(self, kind):
        spy = TransportSpy(lambda r: json_response(200, {"data": {"views": 12}}))
        wd = build_weebdex(spy)

        result = await getattr(wd.statistics, kind)("x1")

        assert spy.last.url.path == f"/{kind}/x1/statistics"
        assert result.data.views == 12


class TestApiClientService:
    @pytest.mark.anyio
    async def test_list_without_credentials(self):
        spy = TransportSpy()
        wd = build_weebdex(spy)

        result = await wd.api_clients.list()

        assert spy.requests == []
        assert not result.succeeded

    @pytest.mark.anyio
    async def test_lifecycle(self):
        spy = TransportSpy(lambda r: json_response(200, {"data": {"id": "k1", "key": "s3cret"}}))
        wd = build_weebdex(spy)

        created = await wd.api_clients.create("bot", credentials=COOKIE)
        await wd.api_clients.update("k1", "bot2", credentials=COOKIE)
        await wd.api_clients.regenerate("k1", credentials=COOKIE)
        await wd.api_clients.delete("k1", credentials=COOKIE)

        assert created.data.key == "s3cret"
        assert [(r.method, r.url.path) for r in spy.requests] == [
            ("POST", "/client"),
            ("PUT", "/client/k1"),
            ("POST", "/client/k1/regenerate"),
            ("DELETE", "/client/k1"),
        ]
        assert json.loads(spy.requests[0].content) == {"name": "bot"}
        assert json.loads(spy.requests[1].content) == {"name": "bot2"}
        assert all(r.headers["cookie"] == "session=1" for r in spy.requests)


class TestCoverService:
    @pytest.mark.anyio
    async def test_for_manga(self):
        spy = TransportSpy(lambda r: json_response(200, {"data": [{"id": "cv1"}, {"id": "cv2"}]}))
        wd = build_weebdex(spy)

        result = await wd.covers.for_manga("m1")

        assert spy.last.url.path == "/manga/m1/covers"
        assert [c.id for c in result.data] == ["cv1", "cv2"]

    @pytest.mark.anyio
    async def test_get_update_delete(self):
        spy = TransportSpy()
        wd = build_weebdex(spy)

        await wd.covers.get("cv1")
        await wd.covers.update("cv1", CoverUpdate(volume="3", version=1), credentials=COOKIE)
        await wd.covers.delete("cv1", credentials=COOKIE)

        assert [(r.method, r.url.path) for r in spy.requests] == [
            ("GET", "/cover/cv1"),
            ("PUT", "/cover/cv1"),
            ("DELETE", "/cover/cv1"),
        ]


class TestGroupService:
    @pytest.mark.anyio
    async def test_list(self):
        spy = TransportSpy(lambda r: json_response(200, page_body([{"id": "g1", "name": "Scans"}])))
        wd = build_weebdex(spy)

        result = await wd.groups.list(ids=["g1", "g2"], name="Scans", limit=10)

        assert str(spy.last.url) == f"{ROOT}/group?id=g1&id=g2&limit=10&page=1&name=Scans"
        assert result.data[0].name == "Scans"

    @pytest.mark.anyio
    async def test_create_and_statistics(self):
        spy = TransportSpy()
        wd = build_weebdex(spy)

        await wd.groups.create(GroupCreate(name="Scans"), credentials=COOKIE)
        await wd.groups.statistics("g1")

        assert [(r.method, r.url.path) for r in spy.requests] == [
            ("POST", "/group"),
            ("GET", "/group/g1/statistics"),
        ]
        assert json.loads(spy.requests[0].content) == {"name": "Scans"}


class TestWeebDex:
    @pytest.mark.anyio
    async def test_injected_client_left_open(self):
        client = httpx.AsyncClient(transport=TransportSpy().transport)
        async with WeebDex(client=client):
            pass
        assert not client.is_closed
        await client.aclose()

    @pytest.mark.anyio
    async def test_owned_client_closed(self):
        wd = WeebDex()
        await wd.aclose()
        assert wd.api._client.is_closed

    def test_rate_limiter_from_config(self):
        wd = WeebDex()
        assert wd.rate_limiter is not None
        assert wd.rate_limiter.permit_limit == 5
        assert wd.rate_limiter.window == 1.0

    def test_rate_limiter_disabled(self):
        wd = build_weebdex(TransportSpy())
        assert wd.rate_limiter is None

    def test_handlers_registered(self, recorder):
        wd = build_weebdex(TransportSpy(), handlers=[recorder])
        assert wd.events.handlers == (recorder,)

    @pytest.mark.anyio
    async def test_from_config_file(self, tmp_path):
        path = tmp_path / "weebdex.yaml"
        path.write_text(
            "api:\n"
            "  api_url: https://api.weebdex.dev\n"
            "  rate_limits: {enabled: false}\n"
            "auth:\n"
            "  cookie: session=cfg\n",
            encoding="utf-8",
        )
        spy = TransportSpy()
        wd = WeebDex.from_config_file(path, client=httpx.AsyncClient(transport=spy.transport))

        await wd.api_clients.list()

        assert wd.config.api_url == "https://api.weebdex.dev"
        assert wd.rate_limiter is None
        assert str(spy.last.url) == "https://api.weebdex.dev/client"
        assert spy.last.headers["cookie"] == "session=cfg"
