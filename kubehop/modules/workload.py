"""Workload operations on namespaces and pods."""
import logging
from typing import Optional

from ..credentials import Secret
from ..dispatch import OperationDispatcher
from ..errors import CommandError
from ..models.cluster import NamespaceStatus, PodLogs
from ..models.hops import HopChain
from ..models.results import CommandResult
from ..operations import Operation

logger = logging.getLogger("kubehop.workload")


class WorkloadOperations:
    def __init__(self, dispatcher: OperationDispatcher):
        self.dispatcher = dispatcher

    def get_namespace_and_pod_status(self, server_id: int, hops: HopChain, namespace: str) -> NamespaceStatus:
        data = self.dispatcher.fetch(
            Operation.GET_NAMESPACE_AND_POD_STATUS, server_id=server_id, hops=hops, namespace=namespace
        )
        return NamespaceStatus.model_validate(data or {})

    def deploy_kubernetes(
        self,
        server_id: int,
        hops: HopChain,
        username_repo: str,
        password_repo: Secret,
        docker_username: str,
        docker_password: Secret,
    ) -> CommandResult:
        """Build and deploy a service to the cluster.

        Git and registry credentials are checked for emptiness before the
        request is sent.
        """
        logger.info(f"Deploying to cluster via server {server_id}")
        return self.dispatcher.execute(
            Operation.DEPLOY_KUBERNETES,
            id=server_id, hops=hops,
            username_repo=username_repo, password_repo=password_repo,
            docker_username=docker_username, docker_password=docker_password,
        )

    def delete_namespace(self, server_id: int, hops: HopChain, namespace: str) -> CommandResult:
        logger.info(f"Deleting namespace {namespace}")
        return self.dispatcher.execute(
            Operation.DELETE_NAMESPACE, server_id=server_id, hops=hops, namespace=namespace
        )

    def get_pod_logs(
        self,
        server_id: int,
        hops: HopChain,
        namespace: str,
        pod_name: str,
        lines: Optional[int] = None,
    ) -> PodLogs:
        """Fetch the tail of a pod's log.

        A pod that no longer exists is reported with ``pod_exists=False``
        rather than raised, even when the backend marks the whole response
        as failed.

        Raises:
            CommandError: If the fetch failed for any other reason
        """
        data = self.dispatcher.fetch(
            Operation.GET_POD_LOGS,
            accept_failure=True,
            server_id=server_id, hops=hops, namespace=namespace, pod_name=pod_name, lines=lines,
        )
        if isinstance(data, str):
            return PodLogs(success=True, logs=data, pod_exists=True)
        logs = PodLogs.model_validate(data or {})
        if isinstance(data, dict) and "success" not in data:
            logs.success = logs.logs is not None
        if logs.pod_missing:
            logger.info(f"Pod {namespace}/{pod_name} no longer exists")
            return logs
        if not logs.success:
            raise CommandError(
                Operation.GET_POD_LOGS.value,
                CommandResult(success=False, error=logs.error or f"could not read logs of {pod_name}"),
            )
        return logs

    def restart_pod(self, server_id: int, hops: HopChain, namespace: str, pod_name: str) -> CommandResult:
        logger.info(f"Restarting pod {namespace}/{pod_name}")
        return self.dispatcher.execute(
            Operation.RESTART_POD, server_id=server_id, hops=hops, namespace=namespace, pod_name=pod_name
        )

    def delete_pod(self, server_id: int, hops: HopChain, namespace: str, pod_name: str) -> CommandResult:
        logger.info(f"Deleting pod {namespace}/{pod_name}")
        return self.dispatcher.execute(
            Operation.DELETE_POD, server_id=server_id, hops=hops, namespace=namespace, pod_name=pod_name
        )
