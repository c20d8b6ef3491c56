import pytest

from officestack.config.models import StackConfig
from officestack.errors import ApplyError
from officestack.render.compose import ComposeRenderer
from officestack.workloads.models import Selector, WorkloadRef

from fakes import config_data


def _cfg(**overrides) -> StackConfig:
    return StackConfig.model_validate(config_data(backend="compose", **overrides))


def test_no_namespace_workload_under_compose():
    r = ComposeRenderer()
    names = r.workload_names(_cfg())
    assert names == ["database", "wordpress-primary", "mail-server", "webmail", "mail-admin"]
    with pytest.raises(ApplyError):
        r.render("namespace", _cfg())


def test_database_fragment():
    m = ComposeRenderer().render("database", _cfg())
    doc = m.document

    assert m.services() == ["db"]
    db = doc["services"]["db"]
    assert db["environment"]["MYSQL_USER"] == "office"
    assert "db_data:/var/lib/mysql" in db["volumes"]
    assert db["configs"][0]["target"] == "/docker-entrypoint-initdb.d/init.sql"
    assert "db_data" in doc["volumes"]
    assert "CREATE DATABASE IF NOT EXISTS `roundcubemail`;" in doc["configs"]["mariadb-init"]["content"]


def test_dollar_signs_are_escaped_for_compose():
    m = ComposeRenderer().render("database", _cfg(database={"password": "pa$word"}))
    assert m.document["services"]["db"]["environment"]["MYSQL_PASSWORD"] == "pa$$word"


def test_published_ports():
    r = ComposeRenderer()
    cfg = _cfg(mail={"ports": {"imaps": 10993}}, webmail={"port": 9090})
    mail = r.render("mail-server", cfg).document["services"]["mailserver"]
    assert "25:25" in mail["ports"]
    assert "10993:993" in mail["ports"]
    assert mail["hostname"] == "mail.example.com"

    webmail = r.render("webmail", cfg).document["services"]["webmail"]
    assert webmail["ports"] == ["9090:80"]
    assert webmail["depends_on"] == ["db", "mailserver"]

    site = r.render("wordpress-primary", cfg).document
    assert site["services"]["wordpress1"]["ports"] == ["8000:80"]
    assert "wordpress1_data" in site["volumes"]


def test_refs_and_cleanup():
    r = ComposeRenderer()
    cfg = _cfg()
    assert r.ref("mail-admin", cfg) == WorkloadRef(kind="service", name="postfixadmin", namespace="office")
    assert r.cleanup_selectors(cfg) == [Selector(kind="project", name="office")]


def test_secondary_site_needs_configuration():
    with pytest.raises(ApplyError, match="sites.secondary"):
        ComposeRenderer().render("wordpress-secondary", _cfg())


def test_missing_template_value_is_an_apply_error(tmp_path):
    (tmp_path / "compose").mkdir()
    (tmp_path / "compose" / "webmail.yaml.j2").write_text(
        "services:\n  webmail:\n    image: {{ webmail.image | tojson }}\n    hostname: {{ missing_host | tojson }}\n"
    )

    with pytest.raises(ApplyError, match="missing_host"):
        ComposeRenderer(templates_dir=tmp_path).render("webmail", _cfg())
