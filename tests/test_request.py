import pytest

from zinx.message import new_msg_package
from zinx.request import FuncRequest, HandleStep, Request, RequestPool
from zinx.router import BaseRouter


def make_request(slices=True, msg_id=1, data=b"payload"):
    return Request("conn", new_msg_package(msg_id, data), slices)


def test_router_slices_context_copy_and_abort():
    calls = []
    copies = []

    def a1(request):
        request.set("Hey", "zinx!")
        request.set("Age", 2)
        calls.append("A1")

    def a2(request):
        calls.append((request.get("Age"), request.get("Hey")))
        copies.append(request.copy())
        request.abort()

    def a3(request):
        calls.append("A3")

    req = make_request()
    req.bind_router_slices([a1, a2, a3])
    req.router_slices_next()

    assert calls == ["A1", (2, "zinx!")]
    assert req.get("Hey") == "zinx!"
    assert req.get("Age") == 2
    cp = copies[0]
    assert cp.get("Hey") == "zinx!"
    assert cp.get("Age") == 2
    assert cp.conn is None
    assert cp.router is None
    assert cp.msg_id == 1
    assert cp.data == b"payload"


def test_copy_keys_are_independent():
    req = make_request()
    req.set("k", 1)
    cp = req.copy()
    cp.set("k", 2)
    assert req.get("k") == 1
    assert cp.get("k") == 2


def test_copy_cannot_run_handlers():
    called = []
    cp = make_request().copy()
    cp.bind_router_slices([lambda r: called.append(1)])
    cp.router_slices_next()
    assert called == []


def test_get_missing_key_and_contains():
    req = make_request()
    assert req.get("nope") is None
    assert "nope" not in req
    req.set("x", 0)
    assert "x" in req


class Recorder(BaseRouter):
    def __init__(self, action=None):
        self.log = []
        self.action = action

    def pre_handle(self, request):
        self.log.append("pre")
        if self.action:
            self.action(request)

    def handle(self, request):
        self.log.append("handle")

    def post_handle(self, request):
        self.log.append("post")


def test_call_runs_all_steps_then_resets():
    router = Recorder()
    req = make_request(slices=False)
    req.bind_router(router)
    req.call()
    assert router.log == ["pre", "handle", "post"]
    assert req.steps == HandleStep.PRE_HANDLE


def test_goto_skips_to_step():
    router = Recorder(lambda r: r.goto(HandleStep.POST_HANDLE))
    req = make_request(slices=False)
    req.bind_router(router)
    req.call()
    assert router.log == ["pre", "post"]


def test_abort_stops_router_steps():
    router = Recorder(lambda r: r.abort())
    req = make_request(slices=False)
    req.bind_router(router)
    req.call()
    assert router.log == ["pre"]


def test_base_router_hooks_run_in_default_steps():
    log = []
    router = BaseRouter()
    router.before = lambda r: log.append(("before", r.msg_id))
    router.after = lambda r: log.append(("after", r.msg_id))
    req = make_request(slices=False, msg_id=9)
    req.bind_router(router)
    req.call()
    assert log == [("before", 9), ("after", 9)]


def test_call_without_router_does_nothing():
    req = make_request(slices=False)
    req.call()
    assert req.steps == HandleStep.PRE_HANDLE


def test_handler_exception_propagates():
    def boom(request):
        raise RuntimeError("boom")

    req = make_request()
    req.bind_router_slices([boom])
    with pytest.raises(RuntimeError):
        req.router_slices_next()


def test_func_request_calls_function():
    hits = []
    fr = FuncRequest("conn", lambda: hits.append(1))
    fr.call_func()
    assert hits == [1]
    assert fr.conn == "conn"


def test_func_request_without_function():
    fr = FuncRequest("conn", None)
    fr.call_func()
    assert fr.conn == "conn"


def test_pool_reuses_and_resets():
    pool = RequestPool(enabled=True, router_slices_mode=True)
    first = pool.acquire("c1", new_msg_package(1, b"a"))
    first.set("k", "v")
    first.index = 5
    pool.release(first)
    second = pool.acquire("c2", new_msg_package(2, b"b"))
    assert second is first
    assert second.conn == "c2"
    assert second.msg_id == 2
    assert second.get("k") is None
    assert second.index == -1


def test_pool_disabled_creates_new():
    pool = RequestPool(enabled=False)
    first = pool.acquire("c", new_msg_package(1, b"a"))
    pool.release(first)
    second = pool.acquire("c", new_msg_package(1, b"a"))
    assert second is not first
    assert second.router_slices_mode is False