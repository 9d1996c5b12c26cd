import os
from dataclasses import replace

import pytest

from pgprovisioner.errors import ValidationError
from pgprovisioner.models import BootstrapRequest, RestoreRequest
from pgprovisioner.services.filesystem import FileSystemService
from pgprovisioner.services.validation import ValidationService


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None

    def info(self, *_args, **_kwargs):
        return None


def _service() -> ValidationService:
    return ValidationService(filesystem_service=FileSystemService(logger=DummyLogger(), console=None))


def _request(tmp_path, **overrides) -> BootstrapRequest:
    superuser_pw = tmp_path / "superuser.pw"
    superuser_pw.write_text("secret", encoding="utf-8")
    app_pw = tmp_path / "app.pw"
    app_pw.write_text("app-secret", encoding="utf-8")

    request = BootstrapRequest(
        data_directory=str(tmp_path / "pgdata"),
        superuser_password_file=str(superuser_pw),
        application_password_file=str(app_pw),
        application_database="appdb",
        application_user="app",
    )
    return replace(request, **overrides)


def test_valid_request_passes(tmp_path):
    _service().validate_bootstrap(_request(tmp_path))


def test_existing_data_directory_is_rejected_without_mutation(tmp_path):
    data_dir = tmp_path / "pgdata"
    data_dir.mkdir()
    (data_dir / "keep.txt").write_text("x", encoding="utf-8")

    with pytest.raises(ValidationError, match="already exists"):
        _service().validate_bootstrap(_request(tmp_path))

    assert os.listdir(data_dir) == ["keep.txt"]


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"superuser_password_file": "/nonexistent/superuser"}, "Superuser password file"),
        ({"application_password_file": "/nonexistent/app"}, "Application user's password file"),
        ({"access_rules_file": "/nonexistent/hba"}, "HBA rules file"),
        ({"extra_config_file": "/nonexistent/conf"}, "PostgreSQL configuration file"),
        ({"application_user": ""}, "application user is empty"),
        ({"application_database": ""}, "application database is empty"),
    ],
)
def test_each_rule_is_reported(tmp_path, overrides, message):
    with pytest.raises(ValidationError, match=message):
        _service().validate_bootstrap(_request(tmp_path, **overrides))


def test_first_violated_rule_wins(tmp_path):
    (tmp_path / "pgdata").mkdir()
    request = _request(
        tmp_path,
        application_password_file="/nonexistent/app",
        application_user="",
    )

    with pytest.raises(ValidationError, match="Application user's password file"):
        _service().validate_bootstrap(request)


def test_optional_files_are_accepted_when_present(tmp_path):
    hba = tmp_path / "hba.conf"
    hba.write_text("host all all 0.0.0.0/0 md5\n", encoding="utf-8")
    conf = tmp_path / "extra.conf"
    conf.write_text("max_connections = 50\n", encoding="utf-8")

    _service().validate_bootstrap(
        _request(tmp_path, access_rules_file=str(hba), extra_config_file=str(conf))
    )


def test_restore_target_missing_or_empty_is_accepted(tmp_path):
    empty = tmp_path / "pgdata"
    empty.mkdir()
    request = RestoreRequest(
        data_directory=str(empty),
        wal_directory=str(tmp_path / "pgwal"),
        cluster_name="cluster-example",
        namespace="default",
    )

    moved = _service().check_restore_target(request)

    assert moved == []
    assert empty.is_dir()


def test_restore_target_with_data_is_moved_aside(tmp_path):
    data_dir = tmp_path / "pgdata"
    data_dir.mkdir()
    (data_dir / "PG_VERSION").write_text("16\n", encoding="utf-8")
    request = RestoreRequest(
        data_directory=str(data_dir), cluster_name="cluster-example", namespace="default"
    )

    moved = _service().check_restore_target(request)

    assert len(moved) == 1
    assert not data_dir.exists()
    assert (tmp_path / os.path.basename(moved[0]) / "PG_VERSION").exists()


def test_restore_target_that_is_a_file_is_rejected(tmp_path):
    target = tmp_path / "pgdata"
    target.write_text("not a directory", encoding="utf-8")
    request = RestoreRequest(
        data_directory=str(target), cluster_name="cluster-example", namespace="default"
    )

    with pytest.raises(ValidationError, match="not a directory"):
        _service().check_restore_target(request)

    assert target.read_text(encoding="utf-8") == "not a directory"
