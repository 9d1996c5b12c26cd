"""Wait for the Cluster resource before any stage runs."""

import os
import time
from typing import Optional

import requests

from pgprovisioner.errors import ProvisionerError

SERVICE_ACCOUNT_TOKEN = "/var/run/secrets/kubernetes.io/serviceaccount/token"
SERVICE_ACCOUNT_CA = "/var/run/secrets/kubernetes.io/serviceaccount/ca.crt"


class NullClusterGate:
    """Gate for environments without a Kubernetes API."""

    def __init__(self, logger):
        self.logger = logger

    def wait(self, cluster_name: str, namespace: str):
        self.logger.debug("No Kubernetes API configured, not waiting for %s/%s", namespace, cluster_name)


class KubernetesClusterGate:
    """Polls the API server until the Cluster object can be read."""

    RESOURCE_PATH = "/apis/postgresql.cnpg.io/v1/namespaces/{namespace}/clusters/{name}"

    def __init__(
        self,
        logger,
        api_url: str,
        retries: int = 30,
        backoff_seconds: float = 2.0,
        token_file: str = SERVICE_ACCOUNT_TOKEN,
        ca_file: str = SERVICE_ACCOUNT_CA,
        requests_module=requests,
    ):
        self.logger = logger
        self.api_url = api_url.rstrip("/")
        self.retries = retries
        self.backoff_seconds = backoff_seconds
        self.token_file = token_file
        self.ca_file = ca_file
        self.requests = requests_module

    def _headers(self):
        if not os.path.exists(self.token_file):
            return {}
        with open(self.token_file, "r", encoding="utf-8") as file_obj:
            return {"Authorization": f"Bearer {file_obj.read().strip()}"}

    def _verify(self):
        return self.ca_file if os.path.exists(self.ca_file) else True

    def wait(self, cluster_name: str, namespace: str):
        url = self.api_url + self.RESOURCE_PATH.format(namespace=namespace, name=cluster_name)
        attempts = max(1, self.retries)
        last_error: Optional[str] = None

        for attempt in range(1, attempts + 1):
            try:
                response = self.requests.get(
                    url,
                    headers=self._headers(),
                    verify=self._verify(),
                    timeout=30,
                )
                response.raise_for_status()
                self.logger.info("Cluster %s/%s is available", namespace, cluster_name)
                return
            except self.requests.RequestException as exc:
                last_error = str(exc)

            if attempt < attempts:
                self.logger.warning(
                    "Cluster %s/%s not available on attempt %s/%s. Retrying in %.1fs: %s",
                    namespace,
                    cluster_name,
                    attempt,
                    attempts,
                    self.backoff_seconds,
                    last_error,
                )
                time.sleep(self.backoff_seconds)

        raise ProvisionerError(
            f"Cluster {namespace}/{cluster_name} did not become available: {last_error}"
        )


def build_cluster_gate(logger, api_url: Optional[str], retries: int, backoff_seconds: float):
    if not api_url:
        return NullClusterGate(logger)
    return KubernetesClusterGate(
        logger,
        api_url=api_url,
        retries=retries,
        backoff_seconds=backoff_seconds,
    )
