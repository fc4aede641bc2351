import logging

from zinx.defaultrouterfunc import (
    STACK_END,
    router_recovery,
    router_time,
    stack_info,
)
from zinx.message import new_msg_package
from zinx.request import Request


def make_request():
    return Request("conn", new_msg_package(3, b"x"), True)


def test_stack_info_starts_at_itself():
    lines = stack_info(0).splitlines()
    assert lines[0].startswith("funcname:stack_info filename:defaultrouterfunc.py")
    assert len(lines) == STACK_END + 1


def test_stack_info_skip_one_is_caller():
    lines = stack_info(1).splitlines()
    assert "funcname:test_stack_info_skip_one_is_caller" in lines[0]
    assert "filename:test_defaultrouterfunc.py" in lines[0]
    assert len(lines) == STACK_END


def test_stack_info_beyond_end_is_empty():
    assert stack_info(STACK_END + 1) == ""


def test_router_recovery_catches_and_logs(caplog):
    calls = []

    def boom(request):
        calls.append("boom")
        raise RuntimeError("kaput")

    def after(request):
        calls.append("after")

    req = make_request()
    req.bind_router_slices([router_recovery, boom, after])
    with caplog.at_level(logging.ERROR, logger="zinx.defaultrouterfunc"):
        req.router_slices_next()
    assert calls == ["boom", "after"]
    text = caplog.text
    assert "MsgId:3" in text
    assert "kaput" in text
    assert "funcname:boom" in text


def test_router_recovery_without_error_runs_chain(caplog):
    calls = []
    req = make_request()
    req.bind_router_slices([router_recovery, lambda r: calls.append(1)])
    with caplog.at_level(logging.ERROR, logger="zinx.defaultrouterfunc"):
        req.router_slices_next()
    assert calls == [1]
    assert caplog.records == []


def test_router_time_prints_duration(capsys):
    calls = []
    req = make_request()
    req.bind_router_slices([router_time, lambda r: calls.append(1)])
    req.router_slices_next()
    out = capsys.readouterr().out
    assert calls == [1]
    assert out.endswith("s\n")
    assert float(out.strip()[:-1]) >= 0