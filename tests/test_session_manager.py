from __future__ import annotations

import asyncio
import json

import pytest

from civiccare.core.errors import AuthError, TransientError
from civiccare.core.session.manager import SessionManager
from civiccare.core.session.models import SessionStatus, UserProfile
from tests.helpers.fakes import FakeAuth, FakeDelay, HttpStatusError, seed


AMIT = {"id": 1, "username": "amit", "email": "amit@example.com", "full_name": "Amit K", "total_points": 40, "is_verified": True}


def _mk(shared, auth, *, delay=None, logger=None):
    return SessionManager(store=shared.view(), auth=auth, delay=delay or FakeDelay(), logger=logger)


def _run(coro):
    return asyncio.run(coro)


# ---- startup ----
def test_no_token_is_ready_without_network_call(shared):
    auth = FakeAuth()
    m = _mk(shared, auth)
    view = _run(m.initialize())
    assert view.is_loading is False
    assert view.is_authenticated is False
    assert view.user is None
    assert auth.fetch_calls == []


def test_scenario_a_cached_user_confirmed(shared):
    seed(shared, token="t1", user={"id": 1, "username": "amit"})
    auth = FakeAuth([{"id": 1, "username": "amit"}])
    m = _mk(shared, auth)
    view = _run(m.initialize())
    assert view.is_loading is False
    assert view.user == UserProfile(id=1, username="amit")
    assert auth.fetch_calls == ["t1"]


@pytest.mark.parametrize("k", [1, 2, 3])
def test_fetch_success_on_attempt_k_updates_user_and_cache(shared, k):
    seed(shared, token="t1")
    results = [TransientError("down")] * (k - 1) + [AMIT]
    auth = FakeAuth(results)
    delay = FakeDelay()
    m = _mk(shared, auth, delay=delay)
    view = _run(m.initialize())
    assert view.user == UserProfile(**AMIT)
    assert len(auth.fetch_calls) == k
    cached = json.loads(shared.snapshot()["authUser"])
    assert UserProfile(**cached) == UserProfile(**AMIT)
    assert m.status == SessionStatus.READY


def test_scenario_b_unauthorized_clears_token_without_retry(shared):
    seed(shared, token="t1")
    auth = FakeAuth([HttpStatusError(401)])
    m = _mk(shared, auth)
    view = _run(m.initialize())
    assert view.is_loading is False
    assert view.user is None
    assert "authToken" not in shared.snapshot()
    assert len(auth.fetch_calls) == 1


def test_forbidden_clears_cached_user_too(shared):
    seed(shared, token="t1", user=AMIT)
    auth = FakeAuth([AuthError(status=403)])
    delay = FakeDelay()
    m = _mk(shared, auth, delay=delay)
    view = _run(m.initialize())
    assert view.user is None
    assert shared.snapshot() == {}
    assert delay.delays == []


def test_scenario_c_transient_failures_keep_cached_user(shared):
    seed(shared, token="t1", user={"id": 2})
    auth = FakeAuth([TransientError("net"), TransientError("net"), TransientError("net")])
    delay = FakeDelay()
    m = _mk(shared, auth, delay=delay)
    view = _run(m.initialize())
    assert view.is_loading is False
    assert view.user == UserProfile(id=2)
    assert len(auth.fetch_calls) == 3
    assert delay.delays == pytest.approx([0.4, 0.8])
    # token survives a transient outage
    assert shared.snapshot()["authToken"] == "t1"


def test_transient_failures_without_cache_end_unauthenticated_but_keep_token(shared):
    seed(shared, token="t1")
    auth = FakeAuth([ConnectionError("a"), TimeoutError("b"), RuntimeError("c")])
    m = _mk(shared, auth)
    view = _run(m.initialize())
    assert view.user is None
    assert view.is_loading is False
    assert shared.snapshot()["authToken"] == "t1"


def test_scenario_d_nothing_stored(shared):
    auth = FakeAuth()
    m = _mk(shared, auth)
    view = _run(m.initialize())
    assert view.to_dict() == {"user": None, "is_authenticated": False, "is_loading": False}
    assert auth.fetch_calls == []


def test_cached_user_without_token_is_not_authenticated(shared):
    seed(shared, user={"id": 5, "username": "riya"})
    auth = FakeAuth()
    m = _mk(shared, auth)
    seen = []
    m.subscribe(seen.append)
    view = _run(m.initialize())
    assert view.to_dict() == {"user": None, "is_authenticated": False, "is_loading": False}
    assert all(v.user is None for v in seen)
    assert auth.fetch_calls == []


def test_malformed_cache_is_discarded(shared, logger):
    seed(shared, token="t1", raw_user="{not json")
    auth = FakeAuth([AMIT])
    m = _mk(shared, auth, logger=logger)
    seen = []
    m.subscribe(lambda v: seen.append(v.user))
    view = _run(m.initialize())
    assert view.user == UserProfile(**AMIT)
    assert seen[0] is None
    assert any("malformed cached user" in msg for lvl, msg in logger.records if lvl == "warning")


def test_malformed_cache_is_removed_even_when_fetch_fails(shared):
    seed(shared, token="t1", raw_user='{"username": "no id"}')
    auth = FakeAuth([TransientError()] * 3)
    m = _mk(shared, auth)
    view = _run(m.initialize())
    assert view.user is None
    assert "authUser" not in shared.snapshot()


def test_optimistic_user_is_published_before_network_result(shared):
    seed(shared, token="t1", user={"id": 1, "username": "old"})
    auth = FakeAuth([{"id": 1, "username": "new"}])
    m = _mk(shared, auth)
    seen = []
    m.subscribe(lambda v: seen.append((v.is_loading, v.user.username if v.user else None)))
    _run(m.initialize())
    assert seen[0] == (True, "old")
    assert seen[-1] == (False, "new")


def test_loading_until_initialized(shared):
    m = _mk(shared, FakeAuth())
    assert m.is_loading is True
    assert m.status == SessionStatus.UNINITIALIZED


def test_second_initialize_is_a_noop(shared):
    seed(shared, token="t1")
    auth = FakeAuth([AMIT])
    m = _mk(shared, auth)
    _run(m.initialize())
    _run(m.initialize())
    assert len(auth.fetch_calls) == 1


# ---- teardown ----
def test_close_during_backoff_stops_retries_and_mutation(shared):
    seed(shared, token="t1", user={"id": 2})
    auth = FakeAuth([TransientError(), AMIT])
    m = _mk(shared, auth, delay=FakeDelay(on_delay=lambda _s: m.close()))
    seen = []
    m.subscribe(lambda v: seen.append(v))
    _run(m.initialize())
    assert len(auth.fetch_calls) == 1
    assert m.status == SessionStatus.RESTORING
    assert m.user == UserProfile(id=2)
    assert len(seen) == 1


def test_close_while_fetch_in_flight_discards_result(shared):
    seed(shared, token="t1")
    auth = FakeAuth([AuthError(status=401)])
    m = _mk(shared, auth)
    auth.on_fetch = lambda _n: m.close()
    _run(m.initialize())
    # the 401 arrived after teardown: nothing is invalidated
    assert shared.snapshot()["authToken"] == "t1"
    assert m.user is None


def test_close_releases_store_subscription(shared):
    tab = shared.view()
    m = SessionManager(store=tab, auth=FakeAuth())
    assert tab.listener_count() == 1
    m.close()
    assert tab.listener_count() == 0


# ---- login / logout / update ----
def test_login_persists_and_marks_ready(shared):
    m = _mk(shared, FakeAuth())
    view = m.login("tok", AMIT)
    assert view.is_authenticated is True
    assert view.is_loading is False
    snap = shared.snapshot()
    assert snap["authToken"] == "tok"
    assert json.loads(snap["authUser"])["username"] == "amit"


def test_login_twice_overwrites(shared):
    m = _mk(shared, FakeAuth())
    m.login("tok", AMIT)
    m.login("tok2", {"id": 9, "username": "zara"})
    assert m.user.username == "zara"
    assert shared.snapshot()["authToken"] == "tok2"


def test_logout_clears_local_session_when_server_fails(shared, logger):
    auth = FakeAuth(logout_error=TransientError("unreachable"))
    m = _mk(shared, auth, logger=logger)
    m.login("tok", AMIT)
    view = _run(m.logout())
    assert view.user is None
    assert shared.snapshot() == {}
    assert auth.logout_calls == ["tok"]
    assert any("Logout request failed" in msg for _lvl, msg in logger.records)


def test_logout_when_already_logged_out(shared):
    auth = FakeAuth()
    m = _mk(shared, auth)
    _run(m.initialize())
    view = _run(m.logout())
    assert view.is_authenticated is False
    assert auth.logout_calls == [None]


def test_update_user_merges_and_persists(shared):
    m = _mk(shared, FakeAuth())
    m.login("tok", AMIT)
    merged = m.update_user({"total_points": 55})
    assert merged.total_points == 55
    assert merged.username == "amit"
    assert json.loads(shared.snapshot()["authUser"])["total_points"] == 55


def test_update_user_without_user_is_noop(shared):
    m = _mk(shared, FakeAuth())
    assert m.update_user({"total_points": 5}) is None
    assert shared.snapshot() == {}


# ---- cross-tab ----
def test_token_removed_in_other_tab_clears_user(shared):
    seed(shared, token="t1")
    m = _mk(shared, FakeAuth([AMIT]))
    _run(m.initialize())
    assert m.is_authenticated
    other = shared.view()
    other.remove("authToken")
    assert m.user is None
    assert m.is_loading is False


def test_token_removed_during_retries_wins_over_late_success(shared):
    seed(shared, token="t1", user={"id": 2})
    other = shared.view()
    auth = FakeAuth([TransientError(), AMIT])
    m = _mk(shared, auth, delay=FakeDelay(on_delay=lambda _s: other.remove("authToken")))
    view = _run(m.initialize())
    assert view.user is None
    assert view.is_loading is False
    # the late profile is not written over the other tab's logout
    assert "authToken" not in shared.snapshot()
    assert shared.snapshot()["authUser"] == json.dumps({"id": 2})


def test_user_written_in_other_tab_is_adopted(shared):
    m = _mk(shared, FakeAuth())
    m.login("tok", AMIT)
    other = shared.view()
    other.set("authUser", json.dumps({**AMIT, "total_points": 99}))
    assert m.user.total_points == 99


def test_malformed_user_from_other_tab_is_ignored(shared):
    m = _mk(shared, FakeAuth())
    m.login("tok", AMIT)
    shared.view().set("authUser", "garbage")
    assert m.user == UserProfile(**AMIT)


def test_own_writes_do_not_echo(shared):
    m = _mk(shared, FakeAuth())
    seen = []
    m.subscribe(lambda v: seen.append(v))
    m.login("tok", AMIT)
    assert len(seen) == 1


def test_closed_manager_ignores_other_tabs(shared):
    m = _mk(shared, FakeAuth())
    m.login("tok", AMIT)
    m.close()
    shared.view().remove("authToken")
    assert m.user == UserProfile(**AMIT)


def test_listener_errors_are_isolated(shared, logger):
    m = _mk(shared, FakeAuth(), logger=logger)

    def boom(_v):
        raise RuntimeError("listener broke")

    m.subscribe(boom)
    m.login("tok", AMIT)
    assert m.is_authenticated
    assert any("listener broke" in msg for lvl, msg in logger.records if lvl == "error")
