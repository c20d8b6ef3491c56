import json
import logging

from officestack.observers.console import ConsoleObserver
from officestack.observers.dispatcher import EventBus
from officestack.observers.events import (
    DiagnosticsCollected,
    PlanComputed,
    StepFailed,
    StepStarted,
    StepSucceeded,
)
from officestack.observers.interface import Observer
from officestack.observers.jsonfile import JsonFileObserver
from officestack.observers.logger import LoggerObserver

from fakes import Capture


class Broken:
    def notify(self, event):
        raise RuntimeError("observer bug")


def test_bus_stamps_run_context():
    cap = Capture()
    bus = EventBus([cap], run_id="run-1")
    bus.bind(env="kubernetes", context="office")

    bus.publish(StepStarted, step="Apply(database)", index=1, total=3)

    ev = cap.events[0]
    assert (ev.run_id, ev.env, ev.context) == ("run-1", "kubernetes", "office")
    assert ev.ts.endswith("Z")


def test_failing_observer_does_not_break_the_run():
    cap = Capture()
    bus = EventBus([Broken(), cap])
    bus.publish(PlanComputed, order=["Cleanup", "Report"])
    assert cap.kinds() == ["PlanComputed"]


def test_jsonl_observer(tmp_path):
    path = tmp_path / "events" / "run.jsonl"
    bus = EventBus([JsonFileObserver(path)], env="compose", context="office", run_id="r")

    bus.publish(PlanComputed, order=["Cleanup"])
    bus.publish(StepSucceeded, step="Cleanup", attempts=1, duration_ms=12)

    records = [json.loads(line) for line in path.read_text().splitlines()]
    assert [r["type"] for r in records] == ["PlanComputed", "StepSucceeded"]
    assert [r["seq"] for r in records] == [1, 2]
    assert records[1]["duration_ms"] == 12
    assert records[0]["env"] == "compose"


def test_logger_observer(caplog):
    logger = logging.getLogger("test-observer")
    bus = EventBus([LoggerObserver(logger)], run_id="r")

    with caplog.at_level(logging.DEBUG, logger="test-observer"):
        bus.publish(StepFailed, step="Verify(webmail)", kind="ReadinessTimeout", error="not ready")
        bus.publish(DiagnosticsCollected, name="webmail", output="line one\nline two")

    text = caplog.text
    assert "[event] run_id=r backend=- target=None" in text
    assert "[event] StepFailed step=Verify(webmail) kind=ReadinessTimeout error='not ready'" in text
    assert "[event] DiagnosticsCollected name=webmail\nline one\nline two" in text
    assert "output=" not in text
    # run context is written once, not per event
    assert text.count("run_id=") == 1


def test_console_observer(capsys):
    bus = EventBus([ConsoleObserver()])
    bus.publish(StepStarted, step="Apply(database)", index=2, total=9)
    bus.publish(StepSucceeded, step="Verify(database)", attempts=3, duration_ms=40)
    bus.publish(StepFailed, step="Apply(webmail)", kind="ApplyError", error="invalid")

    out, err = capsys.readouterr()
    assert "[2/9] Apply(database) ..." in out
    assert "ok Verify(database) after 3 attempts" in out
    assert "FAILED Apply(webmail): ApplyError: invalid" in err


def test_sinks_are_observers():
    for sink in (ConsoleObserver, LoggerObserver, JsonFileObserver):
        assert Observer in sink.__mro__
