from assets_availability.pipeline.route_fetch import RouteFetchStats
from assets_availability.scheduler import dispatcher


class FakeDb:
    closed = False

    def close(self):
        self.closed = True


class FakeSessions:
    def __init__(self):
        self.db = FakeDb()
        self.removed = False

    def __call__(self):
        return self.db

    def remove(self):
        self.removed = True


def test_refresh_runs_pipeline_on_a_worker_session(monkeypatch):
    sessions = FakeSessions()
    seen = {}

    async def fake_run(provider, *, session):
        seen.update(provider=provider, session=session)
        return RouteFetchStats(provider=provider, pairs_total=2, records_written=1)

    monkeypatch.setattr(dispatcher, "WorkerSessionLocal", sessions)
    monkeypatch.setattr(dispatcher, "run_route_fetch", fake_run)

    result = dispatcher.refresh_routes("Oku")

    assert result["status"] == "completed"
    assert result["records_written"] == 1
    assert seen == {"provider": "Oku", "session": sessions.db}
    assert sessions.db.closed and sessions.removed
