"""Application role, database and cluster identity provisioning."""

from pgprovisioner.errors import ProvisionerError
from pgprovisioner.models import BootstrapRequest
from pgprovisioner.services.sql import SqlSession, quote_identifier, quote_literal


class AppEnvironmentService:
    """Creates what an application needs to run against a new instance.

    Statements commit one at a time. A failure halfway leaves the earlier
    ones applied and is reported as is.
    """

    def __init__(self, logger, console, filesystem_service):
        self.logger = logger
        self.console = console
        self.filesystem_service = filesystem_service

    def configure(self, session: SqlSession, request: BootstrapRequest):
        self.console.print("[blue]Configuring application environment...[/blue]")
        user = quote_identifier(request.application_user)

        self.logger.info("Creating application user %s", request.application_user)
        session.execute(f"CREATE USER {user}")

        password = self._read_password(request.application_password_file)
        session.execute(f"ALTER USER {user} PASSWORD {quote_literal(password)}")

        self.logger.info(
            "Creating application database %s owned by %s",
            request.application_database,
            request.application_user,
        )
        session.execute(
            f"CREATE DATABASE {quote_identifier(request.application_database)} OWNER {user}"
        )

        session.execute(f"ALTER SYSTEM SET cluster_name TO {quote_literal(request.cluster_name)}")
        self.console.print("[green]Application environment ready.[/green]")

    def _read_password(self, path: str) -> str:
        try:
            contents = self.filesystem_service.read_text(path)
        except OSError as exc:
            raise ProvisionerError(f"Could not read application password file {path}: {exc}") from exc
        # Only one trailing line terminator is dropped.
        if contents.endswith("\r\n"):
            return contents[:-2]
        if contents.endswith("\n"):
            return contents[:-1]
        return contents
