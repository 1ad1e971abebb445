import pytest
import yaml
from pydantic import ValidationError

from kubehop.config import Settings
from kubehop.utils import REDACTED, redact_sensitive_data
from kubehop.utils.kube import parse_cpu, parse_memory


def test_defaults():
    settings = Settings()
    assert settings.backend.base_url == "http://localhost:8080/api/v1"
    assert settings.backend.bootstrap_timeout > settings.backend.timeout
    assert settings.gateway.api_key == "kubehop-secret"


def test_load_file_then_env(tmp_path, monkeypatch):
    path = tmp_path / "kubehop.yaml"
    path.write_text(yaml.safe_dump({
        "backend": {"base_url": "https://backend.example.com/api/", "timeout": 10},
        "logging": {"level": "debug"},
    }))
    monkeypatch.setenv("KUBEHOP_API_TOKEN", "t0ken")
    monkeypatch.setenv("KUBEHOP_TIMEOUT", "15")
    settings = Settings.load(path)
    assert settings.backend.base_url == "https://backend.example.com/api"
    assert settings.backend.api_token == "t0ken"
    assert settings.backend.timeout == 15
    assert settings.logging.level == "DEBUG"


def test_missing_file_uses_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv("KUBEHOP_BASE_URL", raising=False)
    settings = Settings.load(tmp_path / "absent.yaml")
    assert settings.backend.base_url == "http://localhost:8080/api/v1"


def test_timeouts_must_be_positive():
    with pytest.raises(ValidationError):
        Settings(backend={"timeout": 0})


def test_save_round_trip(tmp_path):
    path = tmp_path / "out" / "kubehop.yaml"
    Settings(gateway={"port": 9000}).save(path)
    assert yaml.safe_load(path.read_text())["gateway"]["port"] == 9000


def test_redact_nested_credentials():
    params = {
        "hops": [{"host": "10.0.0.1", "password": "pw"}],
        "lb_password": "lb",
        "join_command": "kubeadm join ...",
        "namespace": "web",
    }
    redacted = redact_sensitive_data(params)
    assert redacted["hops"][0] == {"host": "10.0.0.1", "password": REDACTED}
    assert redacted["lb_password"] == REDACTED
    assert redacted["join_command"] == REDACTED
    assert redacted["namespace"] == "web"


@pytest.mark.parametrize("value,cores", [("500m", 0.5), ("4", 4.0), ("1.5/8", 8.0), (None, 0.0), ("bogus", 0.0)])
def test_parse_cpu(value, cores):
    assert parse_cpu(value) == cores


def test_parse_memory():
    assert parse_memory("512Mi") == 512 * 1024 ** 2
    assert parse_memory("2G") == 2 * 1000 ** 3
