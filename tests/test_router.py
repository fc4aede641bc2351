import pytest

from zinx.router import BaseRouter, GroupRouter, RouteError, RouterSlices


def a1(request):
    request.append("a1")


def a2(request):
    request.append("a2")


def a3(request):
    request.append("a3")


def shared(request):
    request.append("shared")


def test_base_router_steps_do_nothing():
    router = BaseRouter()
    log = []
    router.pre_handle(log)
    router.handle(log)
    router.post_handle(log)
    assert log == []


def test_add_and_get_handlers():
    r = RouterSlices()
    r.add_handler(1, a1, a2, a3)
    assert r.get_handlers(1) == [a1, a2, a3]
    assert r.get_handlers(2) is None


def test_use_prefixes_later_routes_only():
    r = RouterSlices()
    r.add_handler(1, a1)
    r.use(shared)
    r.add_handler(2, a2)
    assert r.get_handlers(1) == [a1]
    assert r.get_handlers(2) == [shared, a2]


def test_repeated_route_rejected():
    r = RouterSlices()
    r.add_handler(1, a1)
    with pytest.raises(RouteError):
        r.add_handler(1, a2)
    assert r.get_handlers(1) == [a1]


def test_group_merges_global_group_and_route_handlers():
    r = RouterSlices()
    r.use(shared)
    g = r.group(10, 20, a1)
    g.use(a2)
    g.add_handler(15, a3)
    assert r.get_handlers(15) == [shared, a1, a2, a3]


@pytest.mark.parametrize("msg_id", [9, 21])
def test_group_rejects_ids_outside_range(msg_id):
    r = RouterSlices()
    g = GroupRouter(10, 20, r)
    with pytest.raises(RouteError):
        g.add_handler(msg_id, a1)
    assert r.get_handlers(msg_id) is None


@pytest.mark.parametrize("msg_id", [10, 20])
def test_group_bounds_are_inclusive(msg_id):
    r = RouterSlices()
    g = GroupRouter(10, 20, r, a1)
    g.add_handler(msg_id, a2)
    assert r.get_handlers(msg_id) == [a1, a2]


def test_handlers_run_in_chain_order():
    r = RouterSlices()
    r.use(shared)
    r.add_handler(1, a1, a2, a3)
    log = []
    for handler in r.get_handlers(1):
        handler(log)
    assert log == ["shared", "a1", "a2", "a3"]