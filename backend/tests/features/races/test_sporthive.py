"""
Tests for the Sporthive adapter.

Upstream is stubbed with httpx.MockTransport.
"""

import httpx
import pytest

from raceimport.features.races.errors import LocatorError, UpstreamError
from raceimport.features.races.sources.http import UpstreamClient
from raceimport.features.races.sources.sporthive import (
    EnvelopeShape,
    SporthiveSource,
    fetch_event_races,
    normalize_classification,
    parse_sporthive_url,
    read_envelope,
)
from raceimport.features.races.timing import GENDER_FEMALE, GENDER_MALE

API = "https://sporthive.test/api"


def classification(n: int) -> dict:
    return {
        "bib": str(1000 + n),
        "name": f"Runner {n}",
        "gender": "M" if n % 2 else "F",
        "category": "Male 30-34" if n % 2 else "Female 30-34",
        "chipTime": "1:30:00",
        "rank": n,
    }


def paged_handler(page_sizes: list[int], calls: list[httpx.Request]):
    """Serve pages of the given sizes in order, then empty pages."""

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        index = len(calls) - 1
        size = page_sizes[index] if index < len(page_sizes) else 0
        offset = int(request.url.params["offset"])
        rows = [classification(offset + i + 1) for i in range(size)]
        return httpx.Response(200, json={"fullClassifications": [{"classification": r} for r in rows]})

    return handler


def make_source(handler, page_size: int = 100, **kwargs) -> tuple[SporthiveSource, httpx.AsyncClient]:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    upstream = UpstreamClient(client=client, max_retries=0, retry_backoff_s=0)
    source = SporthiveSource(
        "123", "3", upstream, page_size=page_size, delay_s=0, api_base=API, **kwargs
    )
    return source, client


# =============================================================================
# Test URL parsing
# =============================================================================

class TestParseSporthiveUrl:
    """Tests for parse_sporthive_url."""

    def test_race_url(self):
        assert parse_sporthive_url("https://results.sporthive.com/events/123/races/3") == ("123", "3")

    def test_bib_url(self):
        url = "https://results.sporthive.com/events/123/races/3/bib/456"
        assert parse_sporthive_url(url) == ("123", "3")

    def test_event_url(self):
        assert parse_sporthive_url("https://results.sporthive.com/events/123") == ("123", None)

    def test_invalid_url(self):
        with pytest.raises(LocatorError):
            parse_sporthive_url("https://example.com/results")


# =============================================================================
# Test envelopes and field aliases
# =============================================================================

class TestReadEnvelope:
    """Tests for resolving response shapes."""

    def test_array(self):
        page = read_envelope([{"bib": "1"}, "junk"])
        assert page.shape == EnvelopeShape.ARRAY
        assert page.rows == [{"bib": "1"}]

    def test_participants(self):
        page = read_envelope({"participants": [{"bib": "1"}]})
        assert page.shape == EnvelopeShape.PARTICIPANTS
        assert len(page.rows) == 1

    def test_results(self):
        page = read_envelope({"results": [{"bib": "1"}, {"bib": "2"}]})
        assert page.shape == EnvelopeShape.RESULTS
        assert len(page.rows) == 2

    def test_full_classifications_unwrapped(self):
        page = read_envelope({"fullClassifications": [
            {"classification": {"bib": "1"}},
            {"bib": "2"},
        ]})
        assert page.shape == EnvelopeShape.FULL_CLASSIFICATIONS
        assert page.rows == [{"bib": "1"}, {"bib": "2"}]

    def test_unknown(self):
        page = read_envelope({"something": "else"})
        assert page.shape == EnvelopeShape.UNKNOWN
        assert page.rows == []


class TestNormalizeClassification:
    """Tests for the field alias resolver."""

    def test_primary_names(self):
        record = normalize_classification({
            "bib": "42",
            "name": "Jane Doe",
            "gender": "F",
            "category": "Female 30-34",
            "chipTime": "1:45:00",
            "rank": 12,
            "genderRank": 3,
            "categoryRank": 1,
            "countryCode": "PUR",
        })
        assert record.bib == "42"
        assert record.name == "Jane Doe"
        assert record.gender == GENDER_FEMALE
        assert record.age_group == "Female 30-34"
        assert record.chip_time_s == 6300
        assert (record.overall_rank, record.gender_rank, record.age_group_rank) == (12, 3, 1)
        assert record.country_code == "PUR"

    def test_aliases(self):
        record = normalize_classification({
            "bibNumber": 7,
            "firstName": "Juan",
            "lastName": "Perez",
            "genderCode": "M",
            "ageGroup": "Male 40-44",
            "finishTime": 5400,
            "overallRank": "5",
            "rankGender": 4,
            "rankCategory": 2,
            "nationality": "ESP",
        })
        assert record.bib == "7"
        assert record.name == "Juan Perez"
        assert record.gender == GENDER_MALE
        assert record.age_group == "Male 40-44"
        assert record.chip_time_s == 5400
        assert (record.overall_rank, record.gender_rank, record.age_group_rank) == (5, 4, 2)
        assert record.country_code == "ESP"

    def test_numeric_gender(self):
        assert normalize_classification({"name": "A", "gender": 2}).gender == GENDER_FEMALE

    def test_missing_name(self):
        assert normalize_classification({"bib": "1"}).name is None

    def test_unparseable_time_is_none(self):
        assert normalize_classification({"name": "A", "chipTime": "DNF"}).chip_time_s is None


# =============================================================================
# Test pagination
# =============================================================================

class TestSporthivePagination:
    """Tests for SporthiveSource.fetch."""

    @pytest.mark.asyncio
    async def test_stops_on_short_page(self):
        """100, 100, 37 rows → 237 finishers in exactly three requests."""
        calls: list[httpx.Request] = []
        source, client = make_source(paged_handler([100, 100, 37], calls))
        async with client:
            records = await source.fetch()

        assert len(records) == 237
        assert len(calls) == 3
        assert [c.url.params["offset"] for c in calls] == ["0", "100", "200"]
        assert all(c.url.params["count"] == "100" for c in calls)
        assert calls[0].url.path == "/api/events/123/races/3/classifications/search"

    @pytest.mark.asyncio
    async def test_stops_on_empty_page(self):
        calls: list[httpx.Request] = []
        source, client = make_source(paged_handler([100, 100], calls))
        async with client:
            records = await source.fetch()

        assert len(records) == 200
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_not_found_ends_crawl(self):
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(200, json=[classification(i + 1) for i in range(10)])
            return httpx.Response(404)

        source, client = make_source(handler, page_size=10)
        async with client:
            records = await source.fetch()

        assert len(records) == 10
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_server_error_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="boom " * 100)

        source, client = make_source(handler)
        async with client:
            with pytest.raises(UpstreamError) as exc_info:
                await source.fetch()

        assert exc_info.value.status_code == 500
        assert len(exc_info.value.body) == 200

    @pytest.mark.asyncio
    async def test_nameless_rows_dropped(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"results": [
                {"bib": "1", "name": "Named"},
                {"bib": "2"},
            ]})

        source, client = make_source(handler)
        async with client:
            records = await source.fetch()

        assert [r.bib for r in records] == ["1"]

    @pytest.mark.asyncio
    async def test_progress_callback(self):
        calls: list[httpx.Request] = []
        progress = []
        source, client = make_source(paged_handler([100, 37], calls))
        async with client:
            await source.fetch(progress.append)

        assert progress == [100, 137]


# =============================================================================
# Test retries
# =============================================================================

class TestUpstreamRetries:
    """Tests for bounded retries in UpstreamClient."""

    @pytest.mark.asyncio
    async def test_retries_gateway_errors(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) < 3:
                return httpx.Response(503)
            return httpx.Response(200, json={"ok": True})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            upstream = UpstreamClient(client=client, max_retries=2, retry_backoff_s=0)
            assert await upstream.get_json(f"{API}/ping") == {"ok": True}
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_transport_error_after_retries(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            raise httpx.ConnectError("refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            upstream = UpstreamClient(client=client, max_retries=1, retry_backoff_s=0)
            with pytest.raises(UpstreamError) as exc_info:
                await upstream.get_json(f"{API}/ping")

        assert exc_info.value.status_code is None
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(400)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            upstream = UpstreamClient(client=client, max_retries=2, retry_backoff_s=0)
            with pytest.raises(UpstreamError):
                await upstream.get_json(f"{API}/ping")
        assert len(calls) == 1


# =============================================================================
# Test race listing
# =============================================================================

class TestFetchEventRaces:
    """Tests for fetch_event_races."""

    @pytest.mark.asyncio
    async def test_lists_races(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/events/123"
            return httpx.Response(200, json={"event": {"races": [
                {"id": 3, "name": "Half Marathon", "distance": 21097, "participantCount": 812},
                {"raceId": 4, "raceName": "5K"},
            ]}})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            upstream = UpstreamClient(client=client, max_retries=0)
            races = await fetch_event_races(upstream, "123", api_base=API)

        assert [(r.id, r.name) for r in races] == [("3", "Half Marathon"), ("4", "5K")]
        assert races[0].participants == 812
        assert races[1].participants is None

    @pytest.mark.asyncio
    async def test_races_without_id_skipped(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"races": [
                {"name": "Kids Dash"},
                {"id": "", "name": "Placeholder"},
                {"id": 7, "name": "10K"},
            ]})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            upstream = UpstreamClient(client=client, max_retries=0)
            races = await fetch_event_races(upstream, "123", api_base=API)

        assert [(r.id, r.name) for r in races] == [("7", "10K")]
