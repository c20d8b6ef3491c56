import json
import subprocess

import pytest
import yaml

from officestack.drivers.compose import ComposeDriver, container_state, parse_ps
from officestack.errors import ApplyError, TransientError
from officestack.workloads.models import Manifest, ReadinessState, Selector, WorkloadRef

from fakes import DummyCP


@pytest.fixture
def calls(monkeypatch):
    recorded = []
    responses = []

    def fake_run(argv, **kwargs):
        recorded.append((argv, kwargs))
        return responses.pop(0) if responses else DummyCP(0)

    monkeypatch.setattr(subprocess, "run", fake_run)
    return recorded, responses


def _fragment(service, **extra):
    doc = {"services": {service: {"image": f"{service}:latest"}}}
    doc.update(extra)
    return Manifest(workload=service, backend="compose", document=doc)


def test_apply_merges_fragments_and_starts_services(calls, tmp_path):
    recorded, _ = calls
    driver = ComposeDriver(project="office", workdir=tmp_path)

    driver.apply(_fragment("db", volumes={"db_data": {}}))
    driver.apply(_fragment("webmail"))

    compose = yaml.safe_load((tmp_path / "docker-compose.yml").read_text())
    assert set(compose["services"]) == {"db", "webmail"}
    assert compose["volumes"] == {"db_data": {}}

    base = ["docker", "compose", "-p", "office", "-f", str(tmp_path / "docker-compose.yml")]
    assert recorded[0][0] == base + ["up", "-d", "db"]
    assert recorded[1][0] == base + ["up", "-d", "webmail"]
    assert recorded[0][1]["cwd"] == str(tmp_path)


def test_apply_failures(calls, tmp_path):
    _, responses = calls
    driver = ComposeDriver(project="office", workdir=tmp_path)

    responses.append(DummyCP(1, err="Cannot connect to the Docker daemon at unix:///var/run/docker.sock"))
    with pytest.raises(TransientError):
        driver.apply(_fragment("db"))

    responses.append(DummyCP(1, err="service \"db\" has neither an image nor a build context"))
    with pytest.raises(ApplyError):
        driver.apply(_fragment("db"))


def test_delete_project_and_service(calls, tmp_path):
    recorded, _ = calls
    driver = ComposeDriver(project="office", workdir=tmp_path)
    driver.apply(_fragment("db"))
    driver.apply(_fragment("webmail"))

    driver.delete(Selector(kind="service", name="webmail"))
    assert recorded[-1][0][-5:] == ["rm", "--stop", "--force", "-v", "webmail"]
    assert set(yaml.safe_load((tmp_path / "docker-compose.yml").read_text())["services"]) == {"db"}

    driver.delete(Selector(kind="project", name="office"))
    assert recorded[-1][0][-3:] == ["down", "--volumes", "--remove-orphans"]
    assert not (tmp_path / "docker-compose.yml").exists()

    # nothing left: no command at all
    before = len(recorded)
    driver.delete(Selector(kind="project", name="office"))
    assert len(recorded) == before


def test_parse_ps_formats():
    entry = {"Service": "db", "State": "running", "Health": "healthy"}
    assert parse_ps(json.dumps([entry])) == [entry]
    assert parse_ps(json.dumps(entry) + "\n" + json.dumps(entry) + "\n") == [entry, entry]
    assert parse_ps("") == []


@pytest.mark.parametrize(
    "state, health, expected",
    [
        ("running", "", ReadinessState.READY),
        ("running", "healthy", ReadinessState.READY),
        ("running", "starting", ReadinessState.PENDING),
        ("running", "unhealthy", ReadinessState.FAILED),
        ("exited", "", ReadinessState.FAILED),
        ("created", "", ReadinessState.PENDING),
    ],
)
def test_container_state(state, health, expected):
    assert container_state({"State": state, "Health": health}) == expected


def test_status(calls, tmp_path):
    recorded, responses = calls
    driver = ComposeDriver(project="office", workdir=tmp_path)
    ref = WorkloadRef(kind="service", name="db", namespace="office")

    # no compose file yet
    assert driver.status(ref) == ReadinessState.PENDING
    assert recorded == []

    driver.apply(_fragment("db"))
    responses.append(DummyCP(0, out=json.dumps({"Service": "db", "State": "running", "Health": "starting"})))
    assert driver.status(ref) == ReadinessState.PENDING
    assert recorded[-1][0][-5:] == ["ps", "--all", "--format", "json", "db"]

    responses.append(DummyCP(0, out=json.dumps({"Service": "db", "State": "running", "Health": "healthy"})))
    assert driver.status(ref) == ReadinessState.READY

    responses.append(DummyCP(0, out=""))
    assert driver.status(ref) == ReadinessState.PENDING


def test_probe_and_diagnostics(calls, tmp_path):
    recorded, responses = calls
    driver = ComposeDriver(project="office", workdir=tmp_path)
    ref = WorkloadRef(kind="service", name="db", namespace="office")

    assert driver.probe(ref, ["healthcheck.sh", "--connect"]) is True
    assert recorded[-1][0][-5:] == ["exec", "-T", "db", "healthcheck.sh", "--connect"]

    responses.extend([DummyCP(0, out="NAME  STATUS"), DummyCP(0, out="db-1  | ready for connections")])
    text = driver.diagnostics(ref)
    assert "$ docker compose ps --all" in text
    assert "ready for connections" in text


def test_missing_docker_socket_is_not_an_absent_service(calls, tmp_path):
    _, responses = calls
    driver = ComposeDriver(project="office", workdir=tmp_path)
    driver.apply(_fragment("db"))
    ref = WorkloadRef(kind="service", name="db", namespace="office")
    socket_error = "Get http://%2Fvar%2Frun%2Fdocker.sock/v1.24/containers: dial unix /var/run/docker.sock: connect: no such file or directory"

    responses.append(DummyCP(1, err=socket_error))
    with pytest.raises(TransientError):
        driver.status(ref)

    responses.append(DummyCP(1, err=socket_error))
    with pytest.raises(TransientError):
        driver.delete(Selector(kind="project", name="office"))
    assert (tmp_path / "docker-compose.yml").exists()


def test_removing_unknown_service_is_success(calls, tmp_path):
    _, responses = calls
    driver = ComposeDriver(project="office", workdir=tmp_path)
    driver.apply(_fragment("db"))

    responses.append(DummyCP(1, err="no such service: webmail"))
    driver.delete(Selector(kind="service", name="webmail"))
