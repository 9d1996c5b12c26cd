import logging
import os

import click
from rich.logging import RichHandler

from .bootstrap import InstanceBootstrapper
from .constants import (
    DEFAULT_BACKUP_ID,
    DEFAULT_CONFIG_FILE_NAME,
    DEFAULT_PORT,
    DEFAULT_STARTUP_TIMEOUT,
    DEFAULT_STOP_TIMEOUT,
)
from .errors import ProvisionerError
from .models import BootstrapRequest, RestoreRequest
from .restore import InstanceRestorer
from .restore import console as restore_console
from .services.cancellation import CancellationToken, install_signal_handlers
from .services.cluster_gate import build_cluster_gate
from .services.command_runner import CommandRunner
from .services.config_loader import ConfigLoader
from .services.remote_restore import BarmanCloudRestoreService
from .services.sidecar import notifiers_from_environment, notify_sidecars

logger = logging.getLogger("pgprovisioner")


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


def _configure_logging(verbose: bool, log_file):
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)


def _wait_for_cluster(config, cluster_name, namespace):
    gate = build_cluster_gate(
        logger,
        api_url=_resolve_option(
            None, config, "kubernetes_api_url", default=os.environ.get("KUBERNETES_API_URL")
        ),
        retries=int(_resolve_option(None, config, "cluster_wait_retries", default=30)),
        backoff_seconds=float(
            _resolve_option(None, config, "cluster_wait_backoff_seconds", default=2.0)
        ),
    )
    try:
        gate.wait(cluster_name, namespace)
    except ProvisionerError as exc:
        raise click.ClickException(str(exc)) from exc


@click.group()
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help=f"Path to a YAML configuration file. Defaults to {DEFAULT_CONFIG_FILE_NAME} if present.",
)
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to log file")
@click.pass_context
def main(ctx, config, verbose, log_file):
    """Bootstrap or restore a PostgreSQL instance data directory."""
    try:
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), DEFAULT_CONFIG_FILE_NAME)
            if os.path.exists(default_config_path):
                resolved_config = default_config_path

        config_values = ConfigLoader().load(resolved_config)
    except ProvisionerError as exc:
        raise click.ClickException(str(exc)) from exc

    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    log_file = _resolve_option(log_file, config_values, "log_file")
    _configure_logging(verbose, log_file)

    ctx.obj = config_values


@main.command()
@click.option("--pg-data", envvar="PGDATA", help="The PGDATA to be created")
@click.option("--pw-file", envvar="PWFILE", help="File containing the superuser password")
@click.option("--app-db", envvar="APP_DB", help="The name of the application database")
@click.option("--app-user", envvar="APP_USER", help="The name of the application user")
@click.option("--app-pw-file", envvar="APP_PWFILE", help="File containing the application password")
@click.option("--hba-rules-file", envvar="HBA_RULES_FILE", help="HBA rules to append to pg_hba.conf")
@click.option(
    "--postgresql-config-file",
    envvar="POSTGRESQL_CONFIG_FILE",
    help="Settings to append to postgresql.conf",
)
@click.option("--parent-node", envvar="PARENT_NODE", help="Upstream host used in primary_conninfo")
@click.option(
    "--cluster-name",
    envvar="CLUSTER_NAME",
    help="The name of the current cluster in k8s, used to coordinate switchover and failover",
)
@click.option("--namespace", envvar="NAMESPACE", help="The namespace of the cluster and the Pod in k8s")
@click.option(
    "--port",
    type=int,
    default=None,
    help=f"Loopback port for the transient instance (default: {DEFAULT_PORT})",
)
@click.pass_obj
def bootstrap(
    config,
    pg_data,
    pw_file,
    app_db,
    app_user,
    app_pw_file,
    hba_rules_file,
    postgresql_config_file,
    parent_node,
    cluster_name,
    namespace,
    port,
):
    """Create and configure a new PostgreSQL instance."""
    pg_data = _resolve_option(pg_data, config, "pg_data")
    if not pg_data:
        raise click.ClickException("Missing required option '--pg-data' (or PGDATA).")

    request = BootstrapRequest(
        data_directory=pg_data,
        superuser_password_file=_resolve_option(pw_file, config, "pw_file", default=""),
        application_password_file=_resolve_option(app_pw_file, config, "app_pw_file", default=""),
        application_database=_resolve_option(app_db, config, "app_db", default=""),
        application_user=_resolve_option(app_user, config, "app_user", default=""),
        access_rules_file=_resolve_option(hba_rules_file, config, "hba_rules_file"),
        extra_config_file=_resolve_option(postgresql_config_file, config, "postgresql_config_file"),
        upstream_host=_resolve_option(parent_node, config, "parent_node", default=""),
        cluster_name=_resolve_option(cluster_name, config, "cluster_name", default=""),
    )
    namespace = _resolve_option(namespace, config, "namespace", default="")

    cancellation = CancellationToken()
    install_signal_handlers(cancellation, logger)
    _wait_for_cluster(config, request.cluster_name, namespace)

    command_timeout = _resolve_option(None, config, "command_timeout")
    bootstrapper = InstanceBootstrapper(
        request,
        port=int(_resolve_option(port, config, "port", default=DEFAULT_PORT)),
        startup_timeout=int(
            _resolve_option(None, config, "startup_timeout", default=DEFAULT_STARTUP_TIMEOUT)
        ),
        stop_timeout=int(
            _resolve_option(None, config, "stop_timeout", default=DEFAULT_STOP_TIMEOUT)
        ),
        command_timeout=float(command_timeout) if command_timeout is not None else None,
        cancellation=cancellation,
    )
    exit_code = bootstrapper.run()
    if exit_code == 0:
        notify_sidecars(notifiers_from_environment(), logger)
    raise SystemExit(exit_code)


@main.command()
@click.option(
    "--cluster-name",
    envvar="CLUSTER_NAME",
    help="The name of the current cluster in k8s, used to coordinate switchover and failover",
)
@click.option("--namespace", envvar="NAMESPACE", help="The namespace of the cluster and the Pod in k8s")
@click.option("--pg-data", envvar="PGDATA", help="The PGDATA to be restored")
@click.option("--pg-wal", envvar="PGWAL", help="The PGWAL to be restored")
@click.option("--backup-id", required=False, help=f"Backup to restore (default: {DEFAULT_BACKUP_ID})")
@click.pass_obj
def restore(config, cluster_name, namespace, pg_data, pg_wal, backup_id):
    """Restore the data directory from the cluster's remote backup."""
    cluster_name = _resolve_option(cluster_name, config, "cluster_name")
    namespace = _resolve_option(namespace, config, "namespace")
    pg_data = _resolve_option(pg_data, config, "pg_data")
    pg_wal = _resolve_option(pg_wal, config, "pg_wal")

    if not cluster_name:
        raise click.ClickException("Missing required option '--cluster-name' (or CLUSTER_NAME).")
    if not namespace:
        raise click.ClickException("Missing required option '--namespace' (or NAMESPACE).")
    if not pg_data:
        raise click.ClickException("Missing required option '--pg-data' (or PGDATA).")

    request = RestoreRequest(
        data_directory=pg_data,
        wal_directory=pg_wal or None,
        cluster_name=cluster_name,
        namespace=namespace,
    )

    cancellation = CancellationToken()
    install_signal_handlers(cancellation, logger)
    _wait_for_cluster(config, cluster_name, namespace)

    command_timeout = _resolve_option(None, config, "command_timeout")
    command_runner = CommandRunner(
        logger=logger,
        default_timeout=float(command_timeout) if command_timeout is not None else None,
    )
    remote_restore_service = BarmanCloudRestoreService(
        logger=logger,
        console=restore_console,
        run_cmd=command_runner.run,
        destination_path=_resolve_option(None, config, "barman_destination_path", default=""),
        endpoint_url=_resolve_option(None, config, "barman_endpoint_url"),
        cloud_provider=_resolve_option(None, config, "barman_cloud_provider"),
        backup_id=_resolve_option(backup_id, config, "backup_id", default=DEFAULT_BACKUP_ID),
    )

    restorer = InstanceRestorer(
        request,
        remote_restore_service=remote_restore_service,
        cancellation=cancellation,
    )
    exit_code = restorer.run()
    if exit_code == 0:
        notify_sidecars(notifiers_from_environment(), logger)
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
