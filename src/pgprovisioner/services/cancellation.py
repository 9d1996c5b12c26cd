"""External cancellation support."""

import signal
import threading

from pgprovisioner.errors import OperationCancelled


class CancellationToken:
    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: str):
        if self.is_cancelled():
            raise OperationCancelled(f"Cancelled before stage '{stage}'", stage=stage)


def install_signal_handlers(
    token: CancellationToken, logger, signals=(signal.SIGTERM, signal.SIGINT)
):
    """Cancel ``token`` on the first signal and interrupt the main thread.

    Raising from the handler unwinds whatever blocking call is in flight:
    subprocess.run kills its child and context managers run their cleanup.
    Later signals only mark the token, so cleanup itself is not interrupted.
    """

    def _handler(signum, _frame):
        if token.is_cancelled():
            logger.warning("Signal %s received again while cleaning up", signum)
            return
        token.cancel()
        logger.warning("Signal %s received, cancelling", signum)
        raise OperationCancelled(f"Cancelled by signal {signum}")

    for signum in signals:
        signal.signal(signum, _handler)
