import itertools
from collections import defaultdict, deque
from typing import Any, Dict, List, Optional

import pytest

from kubehop.client import KubehopClient
from kubehop.config import Settings, set_settings
from kubehop.errors import OperationTimeoutError
from kubehop.models.hops import HopChain
from kubehop.modules.orchestrator import ClusterOrchestrator
from kubehop.transport import Transport

JOIN_COMMAND = "kubeadm join 10.0.0.10:6443 --token abc.def"
CERT_KEY = "c0ffee"


def ok(data: Any = None) -> Dict[str, Any]:
    return {"success": True, "data": data}


def step(message: str, success: bool = True, error: Optional[str] = None) -> Dict[str, Any]:
    result = {"success": success, "message": message}
    if error:
        result["error"] = error
    return result


class FakeBackend(Transport):
    """In-memory stand-in for the remote execution backend."""

    def __init__(self):
        self.infras: Dict[int, Dict[str, Any]] = {}
        self.servers: Dict[int, Dict[str, Any]] = {}
        self.permissions: Dict[int, List[Dict[str, Any]]] = defaultdict(list)
        self.users: List[Dict[str, Any]] = []
        self.node_health: Dict[int, bool] = {}
        self.live_nodes: Optional[List[Dict[str, Any]]] = None
        self.calls: List[tuple] = []
        self._scripted: Dict[str, deque] = defaultdict(deque)
        self._ids = itertools.count(1)

    # seeding

    def add_infra(self, name: str = "prod", type: str = "kubernetes") -> int:
        infra_id = next(self._ids)
        self.infras[infra_id] = {"id": infra_id, "name": name, "type": type, "info": "",
                                 "created_at": "2026-01-01T00:00:00Z"}
        return infra_id

    def add_server(self, infra_id: int, name: str, type: str, ip: str = "10.0.0.1") -> int:
        server_id = next(self._ids)
        self.servers[server_id] = {"id": server_id, "server_name": name, "infra_id": infra_id, "type": type,
                                   "ip": ip, "port": 22, "status": "running",
                                   "hops": '[{"host": "%s", "port": 22, "username": "ubuntu"}]' % ip}
        return server_id

    def add_user(self, email: str) -> int:
        user_id = next(self._ids)
        self.users.append({"id": user_id, "email": email})
        return user_id

    def grant(self, infra_id: int, user_id: int, role: str = "member") -> None:
        email = next(u["email"] for u in self.users if u["id"] == user_id)
        self.permissions[infra_id].append({"user_id": user_id, "user_email": email, "role": role})

    # scripting

    def respond(self, action: str, body: Any) -> None:
        """Answer the next ``action`` with ``body`` (an exception is raised instead)."""
        self._scripted[action].append(body)

    def fail(self, action: str, error: str = "backend unavailable") -> None:
        self.respond(action, {"success": False, "error": error})

    def time_out(self, action: str) -> None:
        self.respond(action, OperationTimeoutError(action, 1))

    def actions(self) -> List[str]:
        return [action for action, _ in self.calls]

    def params(self, action: str) -> Dict[str, Any]:
        return [p for a, p in self.calls if a == action][-1]

    # transport

    def request(self, action: str, parameters: Dict[str, Any], timeout: Optional[float] = None) -> Any:
        self.calls.append((action, parameters))
        if self._scripted[action]:
            body = self._scripted[action].popleft()
            if isinstance(body, Exception):
                raise body
            return body
        handler = getattr(self, f"on_{action}", None)
        if handler is None:
            return ok(step(f"{action} done"))
        return handler(parameters)

    # registry

    def on_getInfras(self, p):
        return ok(list(self.infras.values()))

    def on_getInfraById(self, p):
        return ok(self.infras.get(p["id"]))

    def on_createInfra(self, p):
        infra_id = next(self._ids)
        self.infras[infra_id] = {"id": infra_id, "name": p["name"], "type": p["type"], "info": p.get("info", "")}
        return ok(self.infras[infra_id])

    def on_updateInfra(self, p):
        record = self.infras[p["id"]]
        record.update({k: v for k, v in p.items() if k != "id"})
        return ok(record)

    def on_deleteInfra(self, p):
        self.infras.pop(p["id"])
        return ok()

    def on_importKubernetesInfra(self, p):
        infra_id = next(self._ids)
        self.infras[infra_id] = {"id": infra_id, "name": p["name"], "type": p["type"], "info": p.get("info", "")}
        return ok({"infra": self.infras[infra_id], "message": "imported"})

    def on_getServers(self, p):
        return ok([s for s in self.servers.values() if s["infra_id"] == p["infra_id"]])

    def on_getServerById(self, p):
        return ok(self.servers.get(p["id"]))

    def on_createServer(self, p):
        server_id = next(self._ids)
        self.servers[server_id] = dict(p, id=server_id)
        return ok({"id": server_id})

    def on_updateServer(self, p):
        record = self.servers[p["id"]]
        record.update({k: v for k, v in p.items() if k != "id"})
        return ok({"success": True, "message": "updated"})

    def on_deleteServer(self, p):
        self.servers.pop(p["id"])
        return ok()

    def on_getInfraPermissions(self, p):
        return ok(list(self.permissions[p["infra_id"]]))

    def on_setInfraPermission(self, p):
        user = next((u for u in self.users if u["email"] == p["email"]), None)
        if user is None:
            return ok({"success": False, "error": f"no user with email {p['email']}"})
        entries = [e for e in self.permissions[p["infra_id"]] if e["user_id"] != user["id"]]
        entries.append({"user_id": user["id"], "user_email": user["email"], "role": p["role"]})
        self.permissions[p["infra_id"]] = entries
        return ok()

    def on_removeInfraPermission(self, p):
        self.permissions[p["infra_id"]] = [
            e for e in self.permissions[p["infra_id"]] if e["user_id"] != p["user_id"]
        ]
        return ok()

    def on_getAllUsers(self, p):
        return ok(list(self.users))

    # bootstrap

    def _has_master(self, infra_id: int) -> bool:
        return any(s["infra_id"] == infra_id and "master" in s["type"] for s in self.servers.values())

    def on_installFirstMaster(self, p):
        if self._has_master(p["infra_id"]):
            return ok({"success": False, "error": "first master already installed"})
        return ok({
            "success": True,
            "message": "control plane initialised",
            "commandResults": [step("install kubeadm"), step("kubeadm init")],
            "details": {"data": {"join_command": JOIN_COMMAND, "certificate_key": CERT_KEY}},
        })

    def on_joinMaster(self, p):
        return ok({"success": True, "message": "master joined",
                   "commandResults": [step("install kubeadm"), step("kubeadm join"), step("update haproxy")]})

    def on_joinWorker(self, p):
        return ok({"success": True, "message": "worker joined",
                   "commandResults": [step("install kubeadm"), step("kubeadm join")]})

    def on_rebuildFirstMaster(self, p):
        return ok({
            "success": True,
            "message": "first master rebuilt",
            "details": {"data": {"join_command": JOIN_COMMAND + " --new", "certificate_key": "f00d"}},
        })

    def on_rebuildHA(self, p):
        return {"success": True, "message": "haproxy rebuilt"}

    def on_deleteMaster(self, p):
        return ok({"message": "master deletion started"})

    # node lifecycle

    def on_getNodeStatus(self, p):
        healthy = self.node_health.get(p["server_id"], True)
        return ok({
            "status": {"installed": True, "running": healthy, "isMaster": True},
            "lastChecked": "2026-10-18T10:00:00Z",
        })

    def on_startServer(self, p):
        return {"success": True, "message": "started"}

    def on_stopServer(self, p):
        return {"success": True, "message": "stopped"}

    def on_restartServer(self, p):
        return ok({"success": True, "message": "restarted",
                   "commandResults": [step("stop kubelet"), step("start kubelet")]})

    def on_calculateNodes(self, p):
        if self.live_nodes is not None:
            return ok(self.live_nodes)
        infra_id = self.servers[p["server_id"]]["infra_id"]
        nodes = []
        for s in self.servers.values():
            if s["infra_id"] != infra_id or not ({"master", "worker"} & set(s["type"].split(","))):
                continue
            nodes.append({
                "name": s.get("name") or s.get("server_name"),
                "status": "Ready",
                "role": "control-plane" if "master" in s["type"] else "<none>",
                "age": "3d",
                "version": "v1.29.4",
            })
        return ok(nodes)

    def on_calculateResources(self, p):
        return ok({"nodes": {"master": 1, "worker": 2, "ha": 1},
                   "resources": {"cpu": "12", "memory": "48Gi", "pods": "330"},
                   "status": "healthy"})

    # workloads

    def on_getNamespaceAndPodStatus(self, p):
        return ok({
            "namespace": {"name": p["namespace"], "status": "Active", "age": "10d"},
            "pods": [{"name": "web-7d9f", "status": "Running", "ready": "1/1", "restarts": 0, "age": "2d"}],
        })

    def on_getPodLogs(self, p):
        if p["pod_name"] == "gone":
            return ok({"success": False, "pod_exists": False, "error": "pod not found"})
        return ok({"success": True, "logs": "started\nlistening on :8080", "pod_exists": True})


def make_hops(host: str = "10.0.0.10", password: str = "node-pw") -> HopChain:
    return HopChain([
        {"host": "bastion.example.com", "port": 22, "username": "ops", "password": "bastion-pw"},
        {"host": host, "port": "22", "username": "ubuntu", "password": password},
    ])


@pytest.fixture(autouse=True)
def settings():
    settings = Settings()
    set_settings(settings)
    yield settings
    set_settings(None)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def client(backend, settings):
    return KubehopClient(transport=backend, settings=settings)


@pytest.fixture
def orchestrator(client):
    return ClusterOrchestrator(client)


@pytest.fixture
def infra_id(backend):
    return backend.add_infra()


@pytest.fixture
def hops():
    return make_hops()
