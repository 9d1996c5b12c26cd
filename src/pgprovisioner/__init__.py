"""
pgprovisioner - PostgreSQL instance bootstrap and restore orchestrator
"""

__version__ = "0.1.0"

from .bootstrap import InstanceBootstrapper
from .errors import ProvisionerError
from .restore import InstanceRestorer

__all__ = ["InstanceBootstrapper", "InstanceRestorer", "ProvisionerError"]
