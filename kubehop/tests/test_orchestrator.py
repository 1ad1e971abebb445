import pytest

from kubehop.credentials import Secret
from kubehop.errors import (
    OperationTimeoutError,
    PartialSuccessError,
    PermissionDeniedError,
    RequestValidationError,
    TopologyError,
    TransportError,
)
from kubehop.models.hops import HopChain
from kubehop.modules.orchestrator import NodeSpec
from kubehop.modules.topology import TopologyState

from .conftest import CERT_KEY, JOIN_COMMAND, make_hops, ok, step


def node(name, host):
    return NodeSpec(name, make_hops(host), Secret("sudo-pw"))


@pytest.fixture
def cluster(backend, infra_id):
    """An infra with two masters and one worker already registered."""
    return {
        "m1": backend.add_server(infra_id, "master-1", "master", "10.0.0.10"),
        "m2": backend.add_server(infra_id, "master-2", "master", "10.0.0.11"),
        "w1": backend.add_server(infra_id, "worker-1", "worker", "10.0.0.21"),
    }


class TestFreshCluster:
    def test_bootstrap_sequence(self, orchestrator, backend, infra_id):
        lb = orchestrator.install_load_balancer(infra_id, NodeSpec("lb-1", make_hops("10.0.0.5")))
        assert lb.state is TopologyState.LB_READY
        assert lb.server.is_load_balancer

        lb_hops = make_hops("10.0.0.5", "lb-pw")
        first = orchestrator.install_first_master(infra_id, node("master-1", "10.0.0.10"), lb_hops, Secret("lb-pw"))
        assert first.state is TopologyState.SINGLE_MASTER
        assert first.server.ip == "10.0.0.10"
        assert first.server.join_command == JOIN_COMMAND
        assert backend.servers[first.server.id]["certificate_key"] == CERT_KEY

        main_id = first.server.id
        second = orchestrator.join_master(
            infra_id, node("master-2", "10.0.0.11"), lb_hops, Secret("lb-pw"), main_id
        )
        assert second.state is TopologyState.MULTI_MASTER

        worker = orchestrator.join_worker(infra_id, node("worker-1", "10.0.0.21"), main_id)
        assert worker.server.is_worker
        assert worker.state is TopologyState.MULTI_MASTER
        assert backend.params("joinWorker")["main_id"] == main_id
        assert len(backend.servers) == 4

    def test_first_master_requires_lb_chain_once_lb_exists(self, orchestrator, backend, infra_id):
        orchestrator.install_load_balancer(infra_id, NodeSpec("lb-1", make_hops("10.0.0.5")))
        with pytest.raises(TopologyError):
            orchestrator.install_first_master(infra_id, node("master-1", "10.0.0.10"))
        assert "installFirstMaster" not in backend.actions()

    def test_second_first_master_rejected_locally(self, orchestrator, backend, infra_id):
        orchestrator.install_first_master(infra_id, node("master-1", "10.0.0.10"))
        with pytest.raises(TopologyError, match="already has a first master"):
            orchestrator.install_first_master(infra_id, node("master-2", "10.0.0.11"))
        assert backend.actions().count("installFirstMaster") == 1

    def test_join_before_first_master_is_rejected(self, orchestrator, backend, infra_id):
        with pytest.raises(TopologyError):
            orchestrator.join_worker(infra_id, node("worker-1", "10.0.0.21"), main_id=1)
        assert backend.calls and "joinWorker" not in backend.actions()

    def test_failed_join_writes_nothing(self, orchestrator, backend, infra_id, cluster):
        backend.fail("joinWorker", "ssh: handshake failed")
        with pytest.raises(TransportError):
            orchestrator.join_worker(infra_id, node("worker-2", "10.0.0.22"), cluster["m1"])
        assert "createServer" not in backend.actions()
        assert not orchestrator.tracker.is_unverified(infra_id)

    def test_partial_join_marks_infra_unverified(self, orchestrator, backend, infra_id, cluster):
        backend.respond("joinWorker", ok({
            "success": False,
            "commandResults": [step("install kubeadm"), step("kubeadm join", False, "token expired")],
        }))
        with pytest.raises(PartialSuccessError):
            orchestrator.join_worker(infra_id, node("worker-2", "10.0.0.22"), cluster["m1"])
        assert "createServer" not in backend.actions()
        assert orchestrator.tracker.is_unverified(infra_id)

    def test_registry_write_failure_marks_unverified(self, orchestrator, backend, infra_id, cluster):
        backend.fail("createServer")
        with pytest.raises(TransportError):
            orchestrator.join_worker(infra_id, node("worker-2", "10.0.0.22"), cluster["m1"])
        assert orchestrator.tracker.is_unverified(infra_id)

    def test_result_dict_hides_join_material(self, orchestrator, infra_id):
        outcome = orchestrator.install_first_master(infra_id, node("master-1", "10.0.0.10")).as_dict()
        assert outcome["state"] == "single_master"
        assert "join_command" not in outcome["server"]
        assert "sudo-pw" not in str(outcome)


class TestMasterRecovery:
    def test_degraded_master_is_rebuilt(self, orchestrator, backend, infra_id, cluster, hops):
        backend.node_health[cluster["m2"]] = False
        status = orchestrator.check_node(infra_id, cluster["m2"], hops)
        assert not status.healthy
        assert orchestrator.state(infra_id) is TopologyState.DEGRADED

        outcome = orchestrator.rebuild_master(
            infra_id, cluster["m2"], hops, make_hops("10.0.0.5"), Secret("pw"), Secret("lb-pw"), cluster["m1"]
        )
        assert outcome.state is TopologyState.MULTI_MASTER
        assert backend.params("rebuildMaster")["main_id"] == cluster["m1"]

    def test_degraded_main_id_is_refused(self, orchestrator, backend, infra_id, cluster, hops):
        backend.node_health[cluster["m1"]] = False
        orchestrator.check_node(infra_id, cluster["m1"], hops)
        with pytest.raises(TopologyError, match="degraded"):
            orchestrator.rebuild_master(
                infra_id, cluster["m2"], hops, make_hops("10.0.0.5"), Secret("pw"), Secret("lb-pw"), cluster["m1"]
            )
        assert "rebuildMaster" not in backend.actions()

    def test_healthy_check_clears_degraded(self, orchestrator, backend, infra_id, cluster, hops):
        orchestrator.tracker.mark_degraded(infra_id, cluster["w1"])
        orchestrator.check_node(infra_id, cluster["w1"], hops)
        assert orchestrator.state(infra_id) is TopologyState.MULTI_MASTER

    def test_rebuild_first_master_refreshes_join_command(self, orchestrator, backend, infra_id, cluster, hops):
        outcome = orchestrator.rebuild_first_master(infra_id, cluster["m1"], hops, Secret("pw"))
        assert outcome.server.join_command == JOIN_COMMAND + " --new"
        assert backend.servers[cluster["m1"]]["certificate_key"] == "f00d"

    def test_rebuild_worker_target_must_be_worker(self, orchestrator, backend, infra_id, cluster, hops):
        with pytest.raises(TopologyError, match="not a worker"):
            orchestrator.rebuild_worker(infra_id, cluster["m2"], hops, Secret("pw"), cluster["m1"])
        orchestrator.rebuild_worker(infra_id, cluster["w1"], hops, Secret("pw"), cluster["m1"])
        assert backend.actions().count("rebuildWorker") == 1


class TestTeardown:
    def test_worker_record_kept_until_node_removed(self, orchestrator, backend, infra_id, cluster, hops):
        with pytest.raises(TopologyError, match="still a cluster node"):
            orchestrator.delete_server(cluster["w1"])
        assert "deleteServer" not in backend.actions()

        orchestrator.delete_worker(
            infra_id, cluster["w1"], hops, Secret("pw"), make_hops("10.0.0.10"), Secret("pw"), cluster["m1"]
        )
        orchestrator.delete_server(cluster["w1"])
        assert cluster["w1"] not in backend.servers
        assert not orchestrator.tracker.is_detached(infra_id, cluster["w1"])

    def test_delete_master_detaches(self, orchestrator, backend, infra_id, cluster, hops):
        outcome = orchestrator.delete_master(infra_id, cluster["m2"], hops, Secret("pw"))
        assert outcome.state is TopologyState.SINGLE_MASTER
        assert outcome.result.success
        orchestrator.delete_server(cluster["m2"])
        assert orchestrator.state(infra_id) is TopologyState.SINGLE_MASTER

    def test_remove_node_detaches_matching_record(self, orchestrator, backend, infra_id, cluster, hops):
        orchestrator.remove_node(infra_id, cluster["m1"], hops, "worker-1")
        assert backend.params("removeNode")["nodeName"] == "worker-1"
        orchestrator.delete_server(cluster["w1"])
        assert cluster["w1"] not in backend.servers

    def test_force_and_load_balancer_records(self, orchestrator, backend, infra_id, cluster):
        lb = backend.add_server(infra_id, "lb-1", "ha")
        orchestrator.delete_server(lb)
        orchestrator.delete_server(cluster["m2"], force=True)
        assert lb not in backend.servers and cluster["m2"] not in backend.servers


class TestReconcile:
    def test_timeout_blocks_topology_until_reconcile(self, orchestrator, backend, infra_id, cluster, hops):
        backend.time_out("joinWorker")
        with pytest.raises(OperationTimeoutError, match="outcome unknown"):
            orchestrator.join_worker(infra_id, node("worker-2", "10.0.0.22"), cluster["m1"])
        assert orchestrator.tracker.is_unverified(infra_id)

        with pytest.raises(TopologyError, match="reconcile"):
            orchestrator.join_worker(infra_id, node("worker-2", "10.0.0.22"), cluster["m1"])
        orchestrator.renew_certificate(infra_id, cluster["m1"], hops)

        report = orchestrator.reconcile(infra_id, cluster["m1"], hops)
        assert report.consistent
        assert not orchestrator.tracker.is_unverified(infra_id)
        orchestrator.join_worker(infra_id, node("worker-2", "10.0.0.22"), cluster["m1"])

    def test_report_lists_differences(self, orchestrator, backend, infra_id, cluster, hops):
        backend.live_nodes = [
            {"name": "master-1", "status": "Ready"},
            {"name": "master-2", "status": "Ready"},
            {"name": "stray", "status": "NotReady"},
        ]
        report = orchestrator.reconcile(infra_id, cluster["m1"], hops)
        assert report.missing_from_cluster == ["worker-1"]
        assert report.unregistered_nodes == ["stray"]
        assert report.not_ready == ["stray"]
        assert report.as_dict()["consistent"] is False


class TestPermissions:
    @pytest.fixture
    def member(self, backend, infra_id):
        user = backend.add_user("dev@example.com")
        backend.grant(infra_id, user, "member")
        return user

    def test_member_cannot_change_topology(self, orchestrator, backend, infra_id, member):
        with pytest.raises(PermissionDeniedError):
            orchestrator.as_user(member).install_load_balancer(infra_id, NodeSpec("lb-1", make_hops()))
        assert "installLoadBalancer" not in backend.actions()

    def test_member_can_check_nodes(self, orchestrator, infra_id, cluster, member, hops):
        assert orchestrator.as_user(member).check_node(infra_id, cluster["m1"], hops).healthy

    def test_admin_can_bootstrap(self, orchestrator, backend, infra_id):
        admin = backend.add_user("admin@example.com")
        backend.grant(infra_id, admin, "admin")
        outcome = orchestrator.as_user(admin).install_first_master(infra_id, node("master-1", "10.0.0.10"))
        assert outcome.state is TopologyState.SINGLE_MASTER


EMPTY_CHAIN_CALLS = [
    ("install_load_balancer", lambda o, i, c: o.install_load_balancer(i, NodeSpec("lb-1", HopChain()))),
    ("install_first_master", lambda o, i, c: o.install_first_master(
        i, NodeSpec("master-3", HopChain(), Secret("pw")))),
    ("install_first_master_lb", lambda o, i, c: o.install_first_master(
        i, node("master-3", "10.0.0.12"), HopChain(), Secret("lb-pw"))),
    ("join_master", lambda o, i, c: o.join_master(
        i, node("master-3", "10.0.0.12"), HopChain(), Secret("lb-pw"), c["m1"])),
    ("join_worker", lambda o, i, c: o.join_worker(i, NodeSpec("worker-2", HopChain(), Secret("pw")), c["m1"])),
    ("rebuild_first_master", lambda o, i, c: o.rebuild_first_master(i, c["m1"], HopChain(), Secret("pw"))),
    ("rebuild_master", lambda o, i, c: o.rebuild_master(
        i, c["m2"], make_hops(), HopChain(), Secret("pw"), Secret("lb-pw"), c["m1"])),
    ("rebuild_worker", lambda o, i, c: o.rebuild_worker(i, c["w1"], HopChain(), Secret("pw"), c["m1"])),
    ("rebuild_ha", lambda o, i, c: o.rebuild_ha(i, c["m1"], HopChain())),
    ("renew_certificate", lambda o, i, c: o.renew_certificate(i, c["m1"], HopChain())),
    ("delete_master", lambda o, i, c: o.delete_master(i, c["m2"], HopChain(), Secret("pw"))),
    ("delete_master_main", lambda o, i, c: o.delete_master(
        i, c["m2"], make_hops(), Secret("pw"), main_hops=HopChain(), main_password=Secret("pw"))),
    ("delete_worker", lambda o, i, c: o.delete_worker(
        i, c["w1"], make_hops(), Secret("pw"), HopChain(), Secret("pw"), c["m1"])),
    ("remove_node", lambda o, i, c: o.remove_node(i, c["m1"], HopChain(), "worker-1")),
    ("check_node", lambda o, i, c: o.check_node(i, c["m1"], HopChain())),
    ("reconcile", lambda o, i, c: o.reconcile(i, c["m1"], HopChain())),
]


@pytest.mark.parametrize("call", [pytest.param(call, id=name) for name, call in EMPTY_CHAIN_CALLS])
def test_empty_chain_is_rejected_before_any_backend_call(orchestrator, backend, infra_id, cluster, call):
    with pytest.raises(RequestValidationError):
        call(orchestrator, infra_id, cluster)
    assert backend.calls == []
    assert not orchestrator.tracker.is_unverified(infra_id)


def test_degraded_worker_does_not_block_joins(orchestrator, backend, infra_id, cluster, hops):
    backend.node_health[cluster["w1"]] = False
    assert not orchestrator.check_node(infra_id, cluster["w1"], hops).healthy
    assert orchestrator.tracker.is_degraded(infra_id, cluster["w1"])
    assert orchestrator.state(infra_id) is TopologyState.MULTI_MASTER

    outcome = orchestrator.join_worker(infra_id, node("worker-2", "10.0.0.22"), cluster["m1"])
    assert outcome.server.is_worker
    assert outcome.state is TopologyState.MULTI_MASTER
