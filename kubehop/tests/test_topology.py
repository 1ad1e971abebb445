import pytest

from kubehop.errors import TopologyError
from kubehop.models.registry import Infra, Server
from kubehop.modules.topology import InfraTopology, TopologyState, TopologyTracker, guard
from kubehop.operations import Operation

INFRA = Infra(id=1, name="prod", type="kubernetes")


def server(id, type, name=None):
    return Server(id=id, name=name or f"node-{id}", infra_id=1, type=type, ip=f"10.0.0.{id}")


def topo(*servers, degraded=(), unverified=False, infra=INFRA):
    return InfraTopology(infra=infra, servers=list(servers), degraded=set(degraded), unverified=unverified)


@pytest.mark.parametrize("servers,expected", [
    ((), TopologyState.EMPTY),
    ((server(1, "ha"),), TopologyState.LB_READY),
    ((server(1, "ha"), server(2, "master")), TopologyState.SINGLE_MASTER),
    ((server(2, "master"), server(3, "master,ha"), server(4, "worker")), TopologyState.MULTI_MASTER),
])
def test_state_derivation(servers, expected):
    assert topo(*servers).state is expected


def test_degraded_overrides_member_count():
    assert topo(server(2, "master"), server(3, "master"), degraded={3}).state is TopologyState.DEGRADED


@pytest.mark.parametrize("degraded_id,expected", [
    (4, TopologyState.MULTI_MASTER),
    (1, TopologyState.MULTI_MASTER),
    (3, TopologyState.DEGRADED),
])
def test_only_degraded_masters_degrade_the_infra(degraded_id, expected):
    cluster = topo(server(1, "ha"), server(2, "master"), server(3, "master"), server(4, "worker"),
                   degraded={degraded_id})
    assert cluster.state is expected


def test_degraded_worker_still_accepts_joins():
    cluster = topo(server(2, "master"), server(4, "worker"), degraded={4})
    assert guard(Operation.JOIN_WORKER, cluster, main_id=2) is TopologyState.SINGLE_MASTER
    assert guard(Operation.JOIN_MASTER, cluster, main_id=2) is TopologyState.SINGLE_MASTER


def test_first_master_only_once():
    with pytest.raises(TopologyError) as exc:
        guard(Operation.INSTALL_FIRST_MASTER, topo(server(2, "master")))
    assert exc.value.error == "infra already has a first master"


def test_first_master_needs_lb_chain_when_lb_registered():
    lb_only = topo(server(1, "ha"))
    with pytest.raises(TopologyError):
        guard(Operation.INSTALL_FIRST_MASTER, lb_only)
    assert guard(Operation.INSTALL_FIRST_MASTER, lb_only, has_lb_hops=True) is TopologyState.LB_READY


def test_load_balancer_only_on_empty_infra():
    assert guard(Operation.INSTALL_LOAD_BALANCER, topo()) is TopologyState.EMPTY
    with pytest.raises(TopologyError):
        guard(Operation.INSTALL_LOAD_BALANCER, topo(server(1, "ha")))


@pytest.mark.parametrize("op", [Operation.JOIN_MASTER, Operation.JOIN_WORKER])
def test_joins_need_a_running_control_plane(op):
    with pytest.raises(TopologyError):
        guard(op, topo(server(1, "ha")), main_id=1)
    assert guard(op, topo(server(2, "master")), main_id=2) is TopologyState.SINGLE_MASTER


def test_main_id_must_be_a_healthy_master():
    cluster = topo(server(2, "master"), server(3, "master"), server(4, "worker"), degraded={3})
    with pytest.raises(TopologyError, match="not a master"):
        guard(Operation.REBUILD_WORKER, cluster, target_id=4, main_id=4)
    with pytest.raises(TopologyError, match="degraded"):
        guard(Operation.REBUILD_MASTER, cluster, target_id=2, main_id=3)
    with pytest.raises(TopologyError, match="differ"):
        guard(Operation.REBUILD_MASTER, cluster, target_id=3, main_id=3)
    assert guard(Operation.REBUILD_MASTER, cluster, target_id=3, main_id=2) is TopologyState.DEGRADED


def test_target_role_is_checked():
    cluster = topo(server(2, "master"), server(4, "worker"))
    with pytest.raises(TopologyError, match="not a worker"):
        guard(Operation.DELETE_WORKER, cluster, target_id=2, main_id=2)
    with pytest.raises(TopologyError, match="not part of infra"):
        guard(Operation.DELETE_MASTER, cluster, target_id=99)


def test_rebuild_ha_needs_a_load_balancer():
    with pytest.raises(TopologyError):
        guard(Operation.REBUILD_HA, topo(server(2, "master")), target_id=2)
    assert guard(Operation.REBUILD_HA, topo(server(1, "ha")), target_id=1) is TopologyState.LB_READY


def test_external_infra_is_not_bootstrappable():
    external = Infra(id=2, name="acme", type="external_kubernetes")
    with pytest.raises(TopologyError, match="does not support"):
        guard(Operation.INSTALL_LOAD_BALANCER, topo(infra=external))


def test_unverified_blocks_topology_changes_only():
    cluster = topo(server(2, "master"), unverified=True)
    with pytest.raises(TopologyError, match="reconcile"):
        guard(Operation.JOIN_WORKER, cluster, main_id=2)
    assert guard(Operation.RENEW_CERTIFICATE, cluster, target_id=2) is TopologyState.SINGLE_MASTER


def test_non_bootstrap_operation_rejected():
    with pytest.raises(TopologyError):
        guard(Operation.DELETE_POD, topo(server(2, "master")))


def test_tracker_overlay():
    tracker = TopologyTracker()
    servers = [server(2, "master"), server(3, "master"), server(4, "worker")]
    tracker.mark_degraded(1, 3)
    assert tracker.snapshot(INFRA, servers).state is TopologyState.DEGRADED

    tracker.mark_detached(1, 3)
    snap = tracker.snapshot(INFRA, servers)
    assert [s.id for s in snap.servers] == [2, 4]
    assert snap.state is TopologyState.SINGLE_MASTER
    assert not tracker.is_degraded(1, 3)

    tracker.forget(1, 3)
    assert not tracker.is_detached(1, 3)

    tracker.mark_unverified(1)
    assert tracker.snapshot(INFRA, servers).unverified
    tracker.mark_verified(1)
    assert not tracker.is_unverified(1)
