"""Tests for the client-side ApplicationCache and its optimistic stage moves."""
import json

import httpx
import pytest

from jobtrack.cache import ApplicationCache
from jobtrack.client import ApiClient
from jobtrack.exceptions import ApiError, NotFoundError, ValidationError
from jobtrack.schemas import PipelineStage

from .factories import make_application, wire


class ScriptedApi:
    """MockTransport handler serving a fixed list and a scripted PATCH outcome."""

    def __init__(self, applications, patch_status=200, patch_response=None):
        self.applications = {a.id: a for a in applications}
        self.patch_status = patch_status
        self.patch_response = patch_response
        self.requests = []
        self.on_patch = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "GET":
            data = [wire(a) for a in self.applications.values()]
            return httpx.Response(200, json={"data": data, "total": len(data), "page": 1, "limit": 50})
        if request.method == "PATCH":
            if self.on_patch:
                self.on_patch(request)
            if self.patch_response is not None:
                return self.patch_response
            if self.patch_status != 200:
                return httpx.Response(self.patch_status, json={"detail": "Internal server error"})
            app_id = request.url.path.rsplit("/", 1)[-1]
            stage = json.loads(request.content)["stage"]
            current = self.applications[app_id]
            confirmed = make_application(id=app_id, stage=stage, title=current.title, company=current.company)
            return httpx.Response(200, json=wire(confirmed))
        return httpx.Response(405)

    @property
    def patches(self):
        return [r for r in self.requests if r.method == "PATCH"]


def cache_for(api: ScriptedApi) -> ApplicationCache:
    return ApplicationCache(ApiClient(base_url="http://api", transport=httpx.MockTransport(api)))


class TestViews:

    @pytest.mark.asyncio
    async def test_fetch_loads_records(self):
        api = ScriptedApi([make_application("job_1"), make_application("job_2", stage="offer")])
        cache = cache_for(api)
        await cache.fetch()
        assert cache.count == 2
        assert cache.loading is False
        assert cache.error is None

    @pytest.mark.asyncio
    async def test_applications_view_is_a_copy(self):
        cache = cache_for(ScriptedApi([make_application("job_1")]))
        await cache.fetch()
        assert isinstance(cache.applications, tuple)

    @pytest.mark.asyncio
    async def test_by_stage_groups_and_filters(self):
        api = ScriptedApi([
            make_application("job_1", stage="applied", title="Backend Engineer"),
            make_application("job_2", stage="offer", title="Data Engineer"),
            make_application("job_3", stage="applied", title="Designer", company="Hooli"),
        ])
        cache = cache_for(api)
        await cache.fetch()

        columns = cache.by_stage
        assert list(columns) == list(PipelineStage)
        assert [a.id for a in columns[PipelineStage.APPLIED]] == ["job_1", "job_3"]
        assert columns[PipelineStage.INTERVIEW] == []

        cache.set_search_query("ENGINEER")
        assert [a.id for a in cache.by_stage[PipelineStage.APPLIED]] == ["job_1"]
        assert [a.id for a in cache.by_stage[PipelineStage.OFFER]] == ["job_2"]

    @pytest.mark.asyncio
    async def test_selection(self):
        cache = cache_for(ScriptedApi([make_application("job_1")]))
        await cache.fetch()
        cache.select("job_1")
        assert cache.selected.id == "job_1"
        cache.select("job_nope")
        assert cache.selected_id == "job_nope"
        assert cache.selected is None
        cache.select(None)
        assert cache.selected is None

    @pytest.mark.asyncio
    async def test_fetch_failure_sets_error(self):
        cache = ApplicationCache(ApiClient(
            base_url="http://api",
            transport=httpx.MockTransport(lambda request: httpx.Response(500, json={"detail": "boom"})),
        ))
        with pytest.raises(ApiError):
            await cache.fetch()
        assert cache.error == "Failed to fetch job applications"
        assert cache.loading is False


class TestStageTransition:

    @pytest.mark.asyncio
    async def test_success_takes_server_record(self):
        api = ScriptedApi([make_application("job_1", stage="applied")])
        cache = cache_for(api)
        await cache.fetch()

        result = await cache.stage_transition("job_1", "interview")

        assert result.stage == PipelineStage.INTERVIEW
        assert cache.find("job_1") == result
        assert len(api.patches) == 1
        assert json.loads(api.patches[0].content) == {"stage": "interview"}

    @pytest.mark.asyncio
    async def test_optimistic_stage_visible_before_confirmation(self):
        api = ScriptedApi([make_application("job_1", stage="applied")])
        cache = cache_for(api)
        await cache.fetch()
        seen = []
        api.on_patch = lambda request: seen.append(cache.find("job_1").stage)

        await cache.stage_transition("job_1", PipelineStage.OFFER)

        assert seen == [PipelineStage.OFFER]

    @pytest.mark.asyncio
    async def test_same_stage_is_a_no_op(self):
        api = ScriptedApi([make_application("job_1", stage="applied")])
        cache = cache_for(api)
        await cache.fetch()
        before = cache.find("job_1")

        result = await cache.stage_transition("job_1", "applied")

        assert result is before
        assert api.patches == []
        assert len(cache.find("job_1").stage_history) == 1

    @pytest.mark.asyncio
    async def test_unknown_id_sends_nothing(self):
        api = ScriptedApi([make_application("job_1")])
        cache = cache_for(api)
        await cache.fetch()
        with pytest.raises(NotFoundError):
            await cache.stage_transition("job_missing", "offer")
        assert api.patches == []

    @pytest.mark.asyncio
    async def test_invalid_stage_rejected_locally(self):
        api = ScriptedApi([make_application("job_1")])
        cache = cache_for(api)
        await cache.fetch()
        with pytest.raises(ValidationError):
            await cache.stage_transition("job_1", "not_a_stage")
        assert api.patches == []

    @pytest.mark.asyncio
    async def test_failure_rolls_back_exactly(self):
        api = ScriptedApi([make_application("job_1", stage="applied")], patch_status=500)
        cache = cache_for(api)
        await cache.fetch()
        before = cache.find("job_1").model_dump_json()

        with pytest.raises(ApiError):
            await cache.stage_transition("job_1", "interview")

        after = cache.find("job_1")
        assert after.stage == PipelineStage.APPLIED
        assert after.model_dump_json() == before
        assert cache.error == "Failed to update job application stage"

    @pytest.mark.asyncio
    async def test_failure_keeps_list_order(self):
        api = ScriptedApi(
            [make_application("job_1"), make_application("job_2"), make_application("job_3")],
            patch_status=503,
        )
        cache = cache_for(api)
        await cache.fetch()
        with pytest.raises(ApiError):
            await cache.stage_transition("job_2", "offer")
        assert [a.id for a in cache.applications] == ["job_1", "job_2", "job_3"]

    @pytest.mark.asyncio
    async def test_rejected_by_server_validation(self):
        api = ScriptedApi([make_application("job_1", stage="applied")], patch_status=400)
        cache = cache_for(api)
        await cache.fetch()
        with pytest.raises(ValidationError):
            await cache.stage_transition("job_1", "offer")
        assert cache.find("job_1").stage == PipelineStage.APPLIED

    @pytest.mark.asyncio
    async def test_transport_failure_rolls_back(self):
        def handler(request):
            if request.method == "PATCH":
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json={
                "data": [wire(make_application("job_1", stage="applied"))],
                "total": 1, "page": 1, "limit": 50,
            })

        cache = ApplicationCache(ApiClient(base_url="http://api", transport=httpx.MockTransport(handler)))
        await cache.fetch()
        with pytest.raises(ApiError):
            await cache.stage_transition("job_1", "offer")
        assert cache.find("job_1").stage == PipelineStage.APPLIED
        assert cache.error

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [
        httpx.Response(200, text="<html>gateway</html>"),
        httpx.Response(200, json={"id": "job_1"}),
        httpx.Response(200, json=["job_1"]),
    ], ids=["html-body", "partial-record", "json-list"])
    async def test_malformed_success_rolls_back(self, response):
        api = ScriptedApi([make_application("job_1", stage="applied")], patch_response=response)
        cache = cache_for(api)
        await cache.fetch()
        before = cache.find("job_1").model_dump_json()

        with pytest.raises(ApiError):
            await cache.stage_transition("job_1", "interview")

        assert len(api.patches) == 1
        assert cache.find("job_1").stage == PipelineStage.APPLIED
        assert cache.find("job_1").model_dump_json() == before
        assert cache.error == "Failed to update job application stage"


class TestAgainstRealApi:
    """Cache driving the real app through httpx.ASGITransport."""

    @pytest.mark.asyncio
    async def test_create_move_and_delete(self, api_client, service):
        cache = ApplicationCache(api_client)

        created = await cache.create({"title": "SWE", "company": "Acme"})
        assert created.stage == PipelineStage.RESEARCHED

        moved = await cache.stage_transition(created.id, "applied")
        assert [t.to_stage for t in moved.stage_history] == [PipelineStage.RESEARCHED, PipelineStage.APPLIED]
        assert service.get(created.id).stage == PipelineStage.APPLIED

        cache.select(created.id)
        await cache.delete(created.id)
        assert cache.count == 0
        assert cache.selected_id is None
        assert service.list() == []

    @pytest.mark.asyncio
    async def test_fetch_pages_through_everything(self, api_client, service, monkeypatch):
        from jobtrack import cache as cache_module
        from jobtrack.schemas import JobApplicationCreate

        monkeypatch.setattr(cache_module, "FETCH_PAGE_SIZE", 2)
        for i in range(5):
            service.create(JobApplicationCreate(title=f"Role {i}", company="Acme"))

        cache = ApplicationCache(api_client)
        await cache.fetch()
        assert [a.title for a in cache.applications] == [f"Role {i}" for i in range(5)]

    @pytest.mark.asyncio
    async def test_update_failure_sets_error(self, api_client, acme):
        cache = ApplicationCache(api_client)
        await cache.fetch()
        with pytest.raises(ValidationError):
            await cache.update(acme.id, {"title": ""})
        assert cache.error == "Failed to update job application"
        cache.clear_error()
        assert cache.error is None
