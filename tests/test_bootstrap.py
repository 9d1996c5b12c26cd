import os

import pytest

from pgprovisioner.bootstrap import InstanceBootstrapper
from pgprovisioner.errors import ConfigurationError, ExecutionError, OperationCancelled, ValidationError
from pgprovisioner.models import BootstrapRequest
from pgprovisioner.services.cancellation import CancellationToken


class SpyInitdb:
    def __init__(self, fail=False):
        self.calls = []
        self.fail = fail

    def create_data_directory(self, request):
        self.calls.append(request)
        if self.fail:
            raise ExecutionError("Error while creating the PostgreSQL instance")
        os.makedirs(request.data_directory)


class FixedVersion:
    def __init__(self, major):
        self.major = major

    def get_major_version(self, _data_directory):
        return self.major


class RecordingSession:
    def __init__(self):
        self.statements = []

    def execute(self, statement):
        self.statements.append(statement)


class FakeInstanceService:
    def __init__(self):
        self.session = RecordingSession()
        self.superuser_password = None
        self.started = 0
        self.stopped = 0

    def with_running_instance(self, _data_directory, fn):
        self.started += 1
        try:
            return fn(self.session)
        finally:
            self.stopped += 1


class SpyReplica:
    def __init__(self):
        self.calls = []

    def configure_replication(self, session, upstream_host):
        self.calls.append(upstream_host)


@pytest.fixture
def request_files(tmp_path):
    superuser_pw = tmp_path / "superuser.pw"
    superuser_pw.write_text("postgres-secret\n", encoding="utf-8")
    app_pw = tmp_path / "app.pw"
    app_pw.write_text("app-secret", encoding="utf-8")
    return BootstrapRequest(
        data_directory=str(tmp_path / "pgdata"),
        superuser_password_file=str(superuser_pw),
        application_password_file=str(app_pw),
        application_database="appdb",
        application_user="app",
        upstream_host="cluster-example-rw",
        cluster_name="cluster-example",
    )


def build_bootstrapper(request, major=13, cancellation=None, initdb=None):
    bootstrapper = InstanceBootstrapper(request, cancellation=cancellation)
    bootstrapper.initdb_service = initdb or SpyInitdb()
    bootstrapper.engine_version_service = FixedVersion(major)
    bootstrapper.instance_service = FakeInstanceService()
    bootstrapper.replica_service = SpyReplica()
    return bootstrapper


def test_bootstrap_runs_all_stages_in_order(request_files):
    bootstrapper = build_bootstrapper(request_files, major=13)

    bootstrapper.bootstrap()

    assert bootstrapper.completed_steps == [
        "validate",
        "create_data_directory",
        "detect_major_version",
        "configure_application_environment",
        "configure_replication",
        "run_transient_instance",
    ]
    assert bootstrapper.instance_service.superuser_password == "postgres-secret"
    assert bootstrapper.instance_service.stopped == 1
    assert bootstrapper.instance_service.session.statements[0] == 'CREATE USER "app"'


def test_replication_is_configured_exactly_once_from_version_12(request_files):
    bootstrapper = build_bootstrapper(request_files, major=12)

    bootstrapper.bootstrap()

    assert bootstrapper.replica_service.calls == ["cluster-example-rw"]


def test_replication_is_skipped_before_version_12(request_files):
    bootstrapper = build_bootstrapper(request_files, major=11)

    bootstrapper.bootstrap()

    assert bootstrapper.replica_service.calls == []
    assert "configure_replication" not in bootstrapper.completed_steps


def test_missing_password_file_fails_before_initdb(request_files, tmp_path):
    (tmp_path / "superuser.pw").unlink()
    bootstrapper = build_bootstrapper(request_files)

    with pytest.raises(ValidationError) as exc_info:
        bootstrapper.bootstrap()

    assert exc_info.value.stage == "validate"
    assert bootstrapper.initdb_service.calls == []
    assert bootstrapper.instance_service.started == 0


def test_existing_data_directory_fails_before_initdb(request_files, tmp_path):
    (tmp_path / "pgdata").mkdir()
    bootstrapper = build_bootstrapper(request_files)

    assert bootstrapper.run() == 1
    assert bootstrapper.initdb_service.calls == []


def test_initdb_failure_halts_before_instance_start(request_files):
    bootstrapper = build_bootstrapper(request_files, initdb=SpyInitdb(fail=True))

    with pytest.raises(ExecutionError) as exc_info:
        bootstrapper.bootstrap()

    assert exc_info.value.stage == "create_data_directory"
    assert bootstrapper.instance_service.started == 0


def test_sql_failure_is_reported_with_stage_and_directory_kept(request_files, tmp_path):
    bootstrapper = build_bootstrapper(request_files)

    def failing_configure(_session, _request):
        raise ConfigurationError("role already exists")

    bootstrapper.app_environment_service.configure = failing_configure

    with pytest.raises(ConfigurationError) as exc_info:
        bootstrapper.bootstrap()

    assert exc_info.value.stage == "configure_application_environment"
    assert bootstrapper.instance_service.stopped == 1
    assert bootstrapper.replica_service.calls == []
    assert (tmp_path / "pgdata").is_dir()


def test_cancelled_token_prevents_any_stage(request_files):
    token = CancellationToken()
    token.cancel()
    bootstrapper = build_bootstrapper(request_files, cancellation=token)

    with pytest.raises(OperationCancelled):
        bootstrapper.bootstrap()

    assert bootstrapper.completed_steps == []
    assert bootstrapper.initdb_service.calls == []
    assert bootstrapper.run() == 1


def test_run_returns_zero_on_success(request_files):
    assert build_bootstrapper(request_files).run() == 0
