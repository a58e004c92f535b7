from assets_availability.scheduler import locks


def test_lock_names_are_per_provider():
    assert locks.lock_name("Oku") == "assets_availability:run:oku"
    assert locks.lock_name("LiFi") != locks.lock_name("Oku")


def test_disabled_locks_always_acquire():
    with locks.provider_run_lock("Oku") as acquired:
        assert acquired


def test_held_lock_is_reported(monkeypatch):
    class Held:
        def lock(self, name, ttl):
            return False

        def unlock(self, lock):
            raise AssertionError("nothing to release")

    monkeypatch.setattr(locks, "RUN_LOCKS_ENABLED", True)
    monkeypatch.setattr(locks, "LOCKER", Held())

    with locks.provider_run_lock("Oku") as acquired:
        assert not acquired
