import json
import subprocess

import pytest
import yaml

from officestack.drivers.kubectl import KubectlDriver, deployment_state
from officestack.errors import ApplyError, DriverError, TransientError
from officestack.workloads.models import Manifest, ReadinessState, Selector, WorkloadRef

from fakes import DummyCP


class Recorder:
    def __init__(self, *responses):
        self.responses = list(responses) or [DummyCP(0)]
        self.calls = []

    def __call__(self, argv, **kwargs):
        self.calls.append((argv, kwargs))
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


@pytest.fixture
def run(monkeypatch):
    def install(*responses):
        rec = Recorder(*responses)
        monkeypatch.setattr(subprocess, "run", rec)
        return rec
    return install


DEPLOY = WorkloadRef(kind="Deployment", name="mariadb", namespace="office")


def _deployment(desired=1, available=1, updated=1, generation=2, observed=2, conditions=()):
    return {
        "metadata": {"generation": generation},
        "spec": {"replicas": desired},
        "status": {
            "observedGeneration": observed,
            "availableReplicas": available,
            "updatedReplicas": updated,
            "conditions": list(conditions),
        },
    }


def test_apply_pipes_yaml_with_context(run):
    rec = run(DummyCP(0, out="deployment.apps/mariadb configured"))
    manifest = Manifest(
        workload="database",
        backend="kubernetes",
        objects=({"apiVersion": "v1", "kind": "Service", "metadata": {"name": "mariadb"}},),
    )

    KubectlDriver(context="minikube").apply(manifest)

    argv, kwargs = rec.calls[0]
    assert argv == ["kubectl", "--context", "minikube", "apply", "-f", "-"]
    assert yaml.safe_load(kwargs["input"])["metadata"]["name"] == "mariadb"


def test_apply_failure_classification(run):
    manifest = Manifest(workload="db", backend="kubernetes", objects=({"kind": "Service"},))

    run(DummyCP(1, err="The connection to the server localhost:8443 was refused - did you specify the right host? connection refused"))
    with pytest.raises(TransientError):
        KubectlDriver().apply(manifest)

    run(DummyCP(1, err='Deployment.apps "x" is invalid: spec.template.spec.containers[0].image: Required value'))
    with pytest.raises(ApplyError):
        KubectlDriver().apply(manifest)


def test_empty_manifest_is_not_sent(run):
    rec = run()
    KubectlDriver().apply(Manifest(workload="db", backend="kubernetes"))
    assert rec.calls == []


def test_delete_argv_and_not_found(run):
    rec = run(DummyCP(0), DummyCP(1, err='Error from server (NotFound): namespaces "office" not found'))
    driver = KubectlDriver(kubeconfig="/tmp/kc")

    driver.delete(Selector(kind="pods", namespace="office"))
    driver.delete(Selector(kind="namespace", name="office"))

    assert rec.calls[0][0] == ["kubectl", "--kubeconfig", "/tmp/kc", "delete", "pods", "--all", "-n", "office", "--ignore-not-found=true"]
    assert rec.calls[1][0][3:6] == ["delete", "namespace", "office"]


def test_delete_other_failure_raises(run):
    run(DummyCP(1, err="Error from server (Forbidden): cannot delete"))
    with pytest.raises(DriverError):
        KubectlDriver().delete(Selector(kind="pvc", namespace="office"))


def test_missing_kubectl_is_not_treated_as_absent(run, monkeypatch):
    def missing(argv, **kwargs):
        raise FileNotFoundError(argv[0])

    monkeypatch.setattr(subprocess, "run", missing)
    with pytest.raises(DriverError):
        KubectlDriver().delete(Selector(kind="pods", namespace="office"))


@pytest.mark.parametrize(
    "obj, expected",
    [
        (_deployment(), ReadinessState.READY),
        (_deployment(available=0), ReadinessState.PENDING),
        (_deployment(observed=1), ReadinessState.PENDING),
        (_deployment(desired=2, available=2, updated=1), ReadinessState.PENDING),
        (
            _deployment(available=0, conditions=[{"type": "Progressing", "status": "False", "reason": "ProgressDeadlineExceeded"}]),
            ReadinessState.FAILED,
        ),
        (_deployment(conditions=[{"type": "ReplicaFailure", "status": "True"}]), ReadinessState.FAILED),
    ],
)
def test_deployment_state(obj, expected):
    assert deployment_state(obj) == expected


def test_status_queries_json(run):
    rec = run(DummyCP(0, out=json.dumps(_deployment())))
    assert KubectlDriver().status(DEPLOY) == ReadinessState.READY
    assert rec.calls[0][0] == ["kubectl", "get", "deployment", "mariadb", "-o", "json", "-n", "office"]


def test_status_not_found_is_pending(run):
    run(DummyCP(1, err='Error from server (NotFound): deployments.apps "mariadb" not found'))
    assert KubectlDriver().status(DEPLOY) == ReadinessState.PENDING


def test_status_namespace_and_pvc(run):
    run(DummyCP(0, out=json.dumps({"status": {"phase": "Active"}})))
    assert KubectlDriver().status(WorkloadRef(kind="Namespace", name="office")) == ReadinessState.READY

    run(DummyCP(0, out=json.dumps({"status": {"phase": "Terminating"}})))
    assert KubectlDriver().status(WorkloadRef(kind="Namespace", name="office")) == ReadinessState.PENDING

    run(DummyCP(0, out=json.dumps({"status": {"phase": "Lost"}})))
    assert KubectlDriver().status(WorkloadRef(kind="PersistentVolumeClaim", name="d", namespace="office")) == ReadinessState.FAILED


def test_status_unreachable_cluster_is_transient(run):
    run(DummyCP(1, err="Unable to connect to the server: dial tcp 192.168.49.2:8443: i/o timeout"))
    with pytest.raises(TransientError):
        KubectlDriver().status(DEPLOY)


def test_diagnostics_never_raise(run, monkeypatch):
    rec = run(DummyCP(0, out="Name: mariadb"))
    text = KubectlDriver().diagnostics(DEPLOY)
    assert "$ kubectl describe deployment mariadb -n office" in text
    assert "Name: mariadb" in text
    assert any("logs" in argv for argv, _ in rec.calls)

    def boom(argv, **kwargs):
        raise OSError("fork failed")

    monkeypatch.setattr(subprocess, "run", boom)
    assert "<failed: fork failed>" in KubectlDriver().diagnostics(DEPLOY)


def test_probe_execs_in_deployment(run):
    rec = run(DummyCP(0), DummyCP(1, err="ERROR 2002 (HY000): Can't connect"))
    driver = KubectlDriver()
    argv = ["healthcheck.sh", "--connect"]

    assert driver.probe(DEPLOY, argv) is True
    assert driver.probe(DEPLOY, argv) is False
    assert rec.calls[0][0] == ["kubectl", "exec", "deploy/mariadb", "-n", "office", "--"] + argv


def test_lookup_failure_is_not_an_absent_object(run):
    run(DummyCP(1, err="Unable to connect to the server: dial tcp: lookup cluster.local: no such host"))
    driver = KubectlDriver()

    with pytest.raises(TransientError):
        driver.status(DEPLOY)
    with pytest.raises(TransientError):
        driver.delete(Selector(kind="pods", namespace="office"))


def test_unknown_context_is_an_error(run):
    run(DummyCP(1, err='error: context "typo" does not exist'))
    driver = KubectlDriver(context="typo")

    with pytest.raises(DriverError, match="typo"):
        driver.status(DEPLOY)
    with pytest.raises(DriverError):
        driver.delete(Selector(kind="namespace", name="office"))
