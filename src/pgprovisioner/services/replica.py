"""Replication settings for instances that may later follow a primary."""

from pgprovisioner.constants import SUPERUSER, SYSTEM_DATABASE
from pgprovisioner.services.sql import SqlSession, quote_literal


class ReplicaService:
    """Persists primary_conninfo and the timeline policy via ALTER SYSTEM.

    Only meaningful on PostgreSQL 12 and later; older versions keep these
    settings in recovery.conf, which is written elsewhere.
    """

    def __init__(self, logger):
        self.logger = logger

    @staticmethod
    def build_primary_conninfo(upstream_host: str) -> str:
        return f"host={upstream_host} user={SUPERUSER} dbname={SYSTEM_DATABASE}"

    def configure_replication(self, session: SqlSession, upstream_host: str):
        conninfo = self.build_primary_conninfo(upstream_host)
        self.logger.info("Setting primary_conninfo to %s", conninfo)
        session.execute(f"ALTER SYSTEM SET primary_conninfo TO {quote_literal(conninfo)}")

        # Used once this instance is demoted to a replica.
        session.execute("ALTER SYSTEM SET recovery_target_timeline TO 'latest'")
