"""Best-effort shutdown notifications for service mesh sidecars."""

import os
from typing import Iterable, List, Optional

import requests


class NullSidecarNotifier:
    name = "none"

    def notify(self):
        return None


class HttpSidecarNotifier:
    """POSTs to a sidecar admin endpoint so it exits with the main container."""

    name = "sidecar"
    path = "/"

    def __init__(self, base_url: str, requests_module=requests, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.requests = requests_module
        self.timeout = timeout

    def notify(self):
        response = self.requests.post(self.base_url + self.path, timeout=self.timeout)
        response.raise_for_status()


class IstioQuitNotifier(HttpSidecarNotifier):
    name = "istio"
    path = "/quitquitquit"


class LinkerdShutdownNotifier(HttpSidecarNotifier):
    name = "linkerd"
    path = "/shutdown"


def notifiers_from_environment(environ: Optional[dict] = None) -> List:
    environ = os.environ if environ is None else environ
    notifiers: List = []
    if environ.get("ISTIO_QUIT_API"):
        notifiers.append(IstioQuitNotifier(environ["ISTIO_QUIT_API"]))
    if environ.get("LINKERD_SHUTDOWN_API"):
        notifiers.append(LinkerdShutdownNotifier(environ["LINKERD_SHUTDOWN_API"]))
    return notifiers or [NullSidecarNotifier()]


def notify_sidecars(notifiers: Iterable, logger):
    """Notify every sidecar; failures are logged and never raised."""
    for notifier in notifiers:
        try:
            notifier.notify()
            logger.debug("Notified %s sidecar", notifier.name)
        except requests.RequestException as exc:
            logger.warning("Could not notify %s sidecar: %s", notifier.name, exc)
