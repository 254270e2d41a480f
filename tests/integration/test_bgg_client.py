"""Integration tests for the BGG client with mocked HTTP responses."""

from collections.abc import Awaitable, Callable

import httpx
import pytest
import respx
from support import load_xml, thing_document

from meepleboard.catalog import BGGClient
from meepleboard.config import BGGAPIConfig, RetryConfig

BASE_URL = "https://bgg.test/xmlapi2"

SleepFunc = Callable[[float], Awaitable[None]]


def thing_handler(request: httpx.Request) -> httpx.Response:
    """Serve /thing from the per-item fixtures."""
    ids = [int(i) for i in request.url.params["id"].split(",")]
    return httpx.Response(200, text=thing_document(*ids))


@pytest.fixture
def bgg_config() -> BGGAPIConfig:
    return BGGAPIConfig(
        base_url=BASE_URL,
        candidate_delay_seconds=1.0,
        batch_size=2,
        api_token="token-abc",  # type: ignore[arg-type]
    )


@pytest.fixture
def client(bgg_config: BGGAPIConfig, fake_sleep: SleepFunc) -> BGGClient:
    return BGGClient(config=bgg_config, retry_config=RetryConfig(), sleep=fake_sleep)


class TestSearch:
    """Integration tests for name search."""

    @respx.mock
    @pytest.mark.asyncio
    async def test_exact_match(self, client: BGGClient, sleeps: list[float]) -> None:
        """Every candidate is fetched one by one with a pause in between."""
        search_route = respx.get(f"{BASE_URL}/search").mock(
            return_value=httpx.Response(200, text=load_xml("search_catan.xml"))
        )
        thing_route = respx.get(f"{BASE_URL}/thing").mock(side_effect=thing_handler)

        async with client:
            entry = await client.search_by_name("catan")

        assert entry is not None
        assert entry.external_id == 13
        assert entry.name == "Catan"
        assert search_route.calls.last.request.url.params["query"] == "catan"
        assert search_route.calls.last.request.url.params["type"] == "boardgame,boardgameexpansion"
        assert [c.request.url.params["id"] for c in thing_route.calls] == ["13", "325", "27710"]
        assert sleeps == [1.0, 1.0]

    @respx.mock
    @pytest.mark.asyncio
    async def test_closest_match(self, client: BGGClient) -> None:
        respx.get(f"{BASE_URL}/search").mock(
            return_value=httpx.Response(200, text=load_xml("search_catan.xml"))
        )
        respx.get(f"{BASE_URL}/thing").mock(side_effect=thing_handler)

        async with client:
            entry = await client.search_by_name("Catan Dice Gam")

        assert entry is not None
        assert entry.external_id == 27710

    @respx.mock
    @pytest.mark.asyncio
    async def test_search_many_returns_all_candidates(self, client: BGGClient) -> None:
        respx.get(f"{BASE_URL}/search").mock(
            return_value=httpx.Response(200, text=load_xml("search_catan.xml"))
        )
        respx.get(f"{BASE_URL}/thing").mock(side_effect=thing_handler)

        async with client:
            entries = await client.search_many("Catan")

        assert [e.external_id for e in entries] == [13, 325, 27710]
        assert entries[1].base_external_id == 13

    @respx.mock
    @pytest.mark.asyncio
    async def test_exact_match_after_many_hits(self, client: BGGClient, sleeps: list[float]) -> None:
        """Every hit is expanded, so a late exact match still wins."""
        hits = "".join(
            f'<item type="boardgame" id="{i}"><name type="primary" value="Catan Variant {i}"/></item>'
            for i in range(1, 31)
        )
        respx.get(f"{BASE_URL}/search").mock(
            return_value=httpx.Response(200, text=f"<items total='30'>{hits}</items>")
        )

        def variant_handler(request: httpx.Request) -> httpx.Response:
            external_id = int(request.url.params["id"])
            name = "Catan" if external_id == 28 else f"Catan Variant {external_id}"
            return httpx.Response(
                200,
                text=(
                    f'<items><item type="boardgame" id="{external_id}">'
                    f'<name type="primary" value="{name}"/></item></items>'
                ),
            )

        thing_route = respx.get(f"{BASE_URL}/thing").mock(side_effect=variant_handler)

        async with client:
            entry = await client.search_by_name("Catan")

        assert entry is not None
        assert entry.external_id == 28
        assert thing_route.call_count == 30
        assert len(sleeps) == 29

    @respx.mock
    @pytest.mark.asyncio
    async def test_candidates_are_capped(self, fake_sleep: SleepFunc) -> None:
        config = BGGAPIConfig(base_url=BASE_URL, max_search_candidates=2)
        respx.get(f"{BASE_URL}/search").mock(
            return_value=httpx.Response(200, text=load_xml("search_catan.xml"))
        )
        thing_route = respx.get(f"{BASE_URL}/thing").mock(side_effect=thing_handler)

        async with BGGClient(config=config, sleep=fake_sleep) as client:
            entries = await client.search_many("Catan")

        assert len(entries) == 2
        assert thing_route.call_count == 2

    @respx.mock
    @pytest.mark.asyncio
    async def test_no_hits(self, client: BGGClient) -> None:
        respx.get(f"{BASE_URL}/search").mock(
            return_value=httpx.Response(200, text=load_xml("search_empty.xml"))
        )
        thing_route = respx.get(f"{BASE_URL}/thing").mock(side_effect=thing_handler)

        async with client:
            entry = await client.search_by_name("Nonexistent Game")

        assert entry is None
        assert thing_route.call_count == 0

    @respx.mock
    @pytest.mark.asyncio
    async def test_search_failure_is_soft_miss(self, client: BGGClient) -> None:
        respx.get(f"{BASE_URL}/search").mock(return_value=httpx.Response(503))

        async with client:
            assert await client.search_by_name("Catan") is None
            assert await client.search_many("Catan") == []

    @pytest.mark.asyncio
    async def test_blank_name_makes_no_request(self, client: BGGClient) -> None:
        async with client:
            assert await client.search_many("   ") == []


class TestFetchById:
    """Integration tests for single detail fetches."""

    @respx.mock
    @pytest.mark.asyncio
    async def test_success(self, client: BGGClient) -> None:
        route = respx.get(f"{BASE_URL}/thing").mock(side_effect=thing_handler)

        async with client:
            entry = await client.fetch_by_id(325)

        assert entry is not None
        assert entry.is_expansion
        assert entry.base_external_id == 13
        assert route.calls.last.request.url.params["stats"] == "1"

    @respx.mock
    @pytest.mark.asyncio
    async def test_not_yet_available(self, client: BGGClient) -> None:
        respx.get(f"{BASE_URL}/thing").mock(
            return_value=httpx.Response(200, text=load_xml("message.xml"))
        )

        async with client:
            assert await client.fetch_by_id(13) is None

    @respx.mock
    @pytest.mark.asyncio
    async def test_non_document_body(self, client: BGGClient) -> None:
        respx.get(f"{BASE_URL}/thing").mock(
            return_value=httpx.Response(200, text="Rate limit exceeded, slow down")
        )

        async with client:
            assert await client.fetch_by_id(13) is None

    @respx.mock
    @pytest.mark.asyncio
    async def test_unknown_id(self, client: BGGClient) -> None:
        respx.get(f"{BASE_URL}/thing").mock(
            return_value=httpx.Response(200, text="<items termsofuse=''></items>")
        )

        async with client:
            assert await client.fetch_by_id(99999999) is None

    @respx.mock
    @pytest.mark.asyncio
    async def test_transient_server_error_is_retried(
        self,
        client: BGGClient,
        sleeps: list[float],
    ) -> None:
        route = respx.get(f"{BASE_URL}/thing").mock(
            side_effect=[httpx.Response(503), httpx.Response(200, text=thing_document(13))]
        )

        async with client:
            entry = await client.fetch_by_id(13)

        assert entry is not None
        assert entry.name == "Catan"
        assert route.call_count == 2
        assert sleeps == [2]

    @respx.mock
    @pytest.mark.asyncio
    async def test_persistent_server_error_is_soft_miss(
        self,
        client: BGGClient,
        sleeps: list[float],
    ) -> None:
        route = respx.get(f"{BASE_URL}/thing").mock(return_value=httpx.Response(500))

        async with client:
            assert await client.fetch_by_id(13) is None

        assert route.call_count == 5
        assert sleeps == [2, 4, 8, 16]

    @respx.mock
    @pytest.mark.asyncio
    async def test_not_found_status_is_not_retried(
        self,
        client: BGGClient,
        sleeps: list[float],
    ) -> None:
        route = respx.get(f"{BASE_URL}/thing").mock(return_value=httpx.Response(404))

        async with client:
            assert await client.fetch_by_id(13) is None

        assert route.call_count == 1
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_non_positive_id(self, client: BGGClient) -> None:
        async with client:
            assert await client.fetch_by_id(0) is None


class TestHotList:
    """Integration tests for the hot list."""

    @respx.mock
    @pytest.mark.asyncio
    async def test_entries_without_id_are_dropped(self, client: BGGClient) -> None:
        route = respx.get(f"{BASE_URL}/hot").mock(
            return_value=httpx.Response(200, text=load_xml("hot.xml"))
        )

        async with client:
            entries = await client.fetch_hot_list()

        assert [e.external_id for e in entries] == [13, 224517, 342942]
        assert route.calls.last.request.url.params["type"] == "boardgame"

    @respx.mock
    @pytest.mark.asyncio
    async def test_failure_is_empty(self, client: BGGClient) -> None:
        respx.get(f"{BASE_URL}/hot").mock(return_value=httpx.Response(404))

        async with client:
            assert await client.fetch_hot_list() == []


class TestFetchManyByIds:
    """Integration tests for batched detail fetches."""

    @respx.mock
    @pytest.mark.asyncio
    async def test_batches_and_dedup(self, client: BGGClient, sleeps: list[float]) -> None:
        route = respx.get(f"{BASE_URL}/thing").mock(side_effect=thing_handler)

        async with client:
            entries = await client.fetch_many_by_ids([13, 325, 27710, 13, -1])

        assert [e.external_id for e in entries] == [13, 325, 27710]
        assert [c.request.url.params["id"] for c in route.calls] == ["13,325", "27710"]
        assert sleeps == [1.0]

    @respx.mock
    @pytest.mark.asyncio
    async def test_unparsable_items_are_dropped(self, client: BGGClient) -> None:
        body = (
            "<items>"
            '<item type="boardgame" id="abc"><name type="primary" value="Broken"/></item>'
            '<item type="boardgame" id="42"><name type="primary" value="Fine"/></item>'
            "</items>"
        )
        respx.get(f"{BASE_URL}/thing").mock(return_value=httpx.Response(200, text=body))

        async with client:
            entries = await client.fetch_many_by_ids([41, 42])

        assert [e.external_id for e in entries] == [42]

    @respx.mock
    @pytest.mark.asyncio
    async def test_failed_batch_is_skipped(self, client: BGGClient) -> None:
        respx.get(f"{BASE_URL}/thing").mock(
            side_effect=[httpx.Response(500)] * 5
            + [httpx.Response(200, text=thing_document(27710))]
        )

        async with client:
            entries = await client.fetch_many_by_ids([13, 325, 27710])

        assert [e.external_id for e in entries] == [27710]

    @pytest.mark.asyncio
    async def test_empty_input(self, client: BGGClient) -> None:
        async with client:
            assert await client.fetch_many_by_ids([]) == []


class TestSearchSuggestions:
    """Integration tests for paginated suggestions."""

    @respx.mock
    @pytest.mark.asyncio
    async def test_page(self, client: BGGClient) -> None:
        respx.get(f"{BASE_URL}/search").mock(
            return_value=httpx.Response(200, text=load_xml("search_catan.xml"))
        )
        thing_route = respx.get(f"{BASE_URL}/thing").mock(side_effect=thing_handler)

        async with client:
            suggestions = await client.search_suggestions("catan", offset=1, limit=2)

        assert [s.external_id for s in suggestions] == [325, 27710]
        assert suggestions[0].is_expansion is True
        assert thing_route.calls.last.request.url.params["id"] == "325,27710"

    @respx.mock
    @pytest.mark.asyncio
    async def test_page_past_the_end(self, client: BGGClient) -> None:
        respx.get(f"{BASE_URL}/search").mock(
            return_value=httpx.Response(200, text=load_xml("search_catan.xml"))
        )
        thing_route = respx.get(f"{BASE_URL}/thing").mock(side_effect=thing_handler)

        async with client:
            assert await client.search_suggestions("catan", offset=10) == []

        assert thing_route.call_count == 0


class TestClientLifecycle:
    """Integration tests for headers and HTTP client ownership."""

    @respx.mock
    @pytest.mark.asyncio
    async def test_headers(self, client: BGGClient) -> None:
        route = respx.get(f"{BASE_URL}/hot").mock(
            return_value=httpx.Response(200, text=load_xml("hot.xml"))
        )

        async with client:
            await client.fetch_hot_list()

        headers = route.calls.last.request.headers
        assert headers["User-Agent"] == "MeepleBoard/1.0"
        assert headers["Authorization"] == "Bearer token-abc"

    @pytest.mark.asyncio
    async def test_owned_client_is_closed(self, client: BGGClient) -> None:
        async with client:
            http_client = client.client

        assert http_client.is_closed

    @pytest.mark.asyncio
    async def test_injected_client_is_left_open(self, bgg_config: BGGAPIConfig) -> None:
        async with httpx.AsyncClient() as http_client:
            async with BGGClient(config=bgg_config, http_client=http_client) as client:
                assert client.client is http_client

            assert not http_client.is_closed
