import logging

import pytest
import yaml
from typer.testing import CliRunner

from kubehop.cli import app
from kubehop.client import KubehopClient

runner = CliRunner()


@pytest.fixture(autouse=True)
def cli_client(monkeypatch, client):
    monkeypatch.setattr(KubehopClient, "from_settings", classmethod(lambda cls, settings=None: client))
    yield client
    root = logging.getLogger("kubehop")
    for handler in list(root.handlers):
        root.removeHandler(handler)


@pytest.fixture
def hops_file(tmp_path):
    def write(host="10.0.0.10", password="node-pw", wrapped=False):
        hops = [
            {"host": "bastion.example.com", "port": 22, "username": "ops", "password": "bastion-pw"},
            {"host": host, "port": 22, "username": "ubuntu"},
        ]
        if password:
            hops[1]["password"] = password
        path = tmp_path / f"{host}.yaml"
        path.write_text(yaml.safe_dump({"hops": hops} if wrapped else hops))
        return str(path)
    return write


def test_install_first_master(backend, infra_id, hops_file):
    args = ["cluster", "install-first-master", "--infra-id", str(infra_id), "--name", "master-1",
            "--hops", hops_file(), "--password", "sudo-pw"]
    result = runner.invoke(app, args)
    assert result.exit_code == 0, result.output
    assert "Infra state: single_master" in result.output
    assert "kubeadm init" in result.output

    again = runner.invoke(app, args)
    assert again.exit_code == 1
    assert "installFirstMaster failed" in again.output
    assert backend.actions().count("installFirstMaster") == 1


def test_missing_hop_password_is_prompted(backend, infra_id, hops_file):
    path = hops_file(password=None, wrapped=True)
    result = runner.invoke(app, ["cluster", "install-lb", "--infra-id", str(infra_id), "--name", "lb-1",
                                 "--hops", path], input="typed-pw\n")
    assert result.exit_code == 0, result.output
    assert backend.params("installLoadBalancer")["hops"][1]["password"] == "typed-pw"
    assert "typed-pw" not in result.output


def test_invalid_hops_file(tmp_path, infra_id):
    path = tmp_path / "bad.yaml"
    path.write_text(yaml.safe_dump([{"port": 22}]))
    result = runner.invoke(app, ["cluster", "install-lb", "--infra-id", str(infra_id), "--name", "lb-1",
                                 "--hops", str(path)])
    assert result.exit_code == 2
    assert "invalid hops file" in result.output


@pytest.mark.parametrize("hops", [
    [],
    {"hops": []},
    [{"host": "10.0.0.5", "port": "abc", "username": "ops", "password": "pw"}],
    [{"host": "10.0.0.5", "port": 70000, "username": "ops", "password": "pw"}],
])
def test_unusable_hops_file_is_a_usage_error(backend, tmp_path, infra_id, hops):
    path = tmp_path / "hops.yaml"
    path.write_text(yaml.safe_dump(hops))
    result = runner.invoke(app, ["cluster", "install-lb", "--infra-id", str(infra_id), "--name", "lb-1",
                                 "--hops", str(path)])
    assert result.exit_code == 2
    assert "invalid hops file" in result.output
    assert backend.calls == []


def test_join_worker_rejected_without_master(backend, infra_id, hops_file):
    result = runner.invoke(app, ["cluster", "join-worker", "--infra-id", str(infra_id), "--name", "worker-1",
                                 "--main-id", "99", "--hops", hops_file("10.0.0.21"), "--password", "pw"])
    assert result.exit_code == 1
    assert "joinWorker" not in backend.actions()


def test_state(backend, infra_id):
    backend.add_server(infra_id, "lb-1", "ha")
    result = runner.invoke(app, ["cluster", "state", "--infra-id", str(infra_id)])
    assert result.exit_code == 0
    assert "lb_ready" in result.output


def test_node_restart_prints_steps(backend, infra_id, hops_file):
    server_id = backend.add_server(infra_id, "master-1", "master")
    result = runner.invoke(app, ["node", "restart", "--server-id", str(server_id),
                                 "--hops", hops_file()])
    assert result.exit_code == 0, result.output
    assert "stop kubelet" in result.output
    assert "start kubelet" in result.output


def test_pod_logs_for_missing_pod(backend, hops_file):
    result = runner.invoke(app, ["workload", "logs", "--server-id", "1", "-n", "web", "--pod", "gone",
                                 "--hops", hops_file()])
    assert result.exit_code == 0
    assert "no longer exists" in result.output


def test_infra_list_survives_backend_failure(backend):
    backend.fail("getInfras")
    result = runner.invoke(app, ["infra", "list"])
    assert result.exit_code == 0
    assert "\t" not in result.output


def test_infra_create_and_list(backend):
    result = runner.invoke(app, ["infra", "create", "--name", "staging", "--type", "kubernetes"])
    assert result.exit_code == 0, result.output
    assert "Created infra" in result.output
    assert "staging" in runner.invoke(app, ["infra", "list"]).output


def test_delete_server_guard(backend, infra_id):
    server_id = backend.add_server(infra_id, "worker-1", "worker")
    result = runner.invoke(app, ["infra", "delete-server", str(server_id)])
    assert result.exit_code == 1
    assert "still a cluster node" in result.output
    assert runner.invoke(app, ["infra", "delete-server", str(server_id), "--force"]).exit_code == 0
    assert server_id not in backend.servers


def test_permission_set_and_list(backend, infra_id):
    backend.add_user("dev@example.com")
    result = runner.invoke(app, ["permission", "set", str(infra_id), "--email", "dev@example.com", "--role", "admin"])
    assert result.exit_code == 0, result.output
    listed = runner.invoke(app, ["permission", "list", str(infra_id)])
    assert "dev@example.com" in listed.output
    assert "admin" in listed.output
