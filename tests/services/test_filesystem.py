import os

from pgprovisioner.services.filesystem import FileSystemService


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None

    def info(self, *_args, **_kwargs):
        return None


def _service() -> FileSystemService:
    return FileSystemService(logger=DummyLogger(), console=None)


def test_append_file_keeps_existing_content(tmp_path):
    target = tmp_path / "pg_hba.conf"
    target.write_text("local all all trust\n", encoding="utf-8")
    source = tmp_path / "rules"
    source.write_text("host all all 10.0.0.0/8 md5", encoding="utf-8")

    _service().append_file(str(target), str(source))

    assert target.read_text(encoding="utf-8") == (
        "local all all trust\nhost all all 10.0.0.0/8 md5\n"
    )


def test_remove_directory_tolerates_missing_path(tmp_path):
    service = _service()
    directory = tmp_path / "pgdata"
    directory.mkdir()
    (directory / "base").mkdir()

    assert service.remove_directory(str(directory)) is True
    assert not directory.exists()
    assert service.remove_directory(str(directory)) is False


def test_relocate_directory_moves_content_and_links(tmp_path):
    source = tmp_path / "pgdata" / "pg_wal"
    source.mkdir(parents=True)
    (source / "000000010000000000000001").write_text("wal", encoding="utf-8")
    destination = tmp_path / "pgwal"

    _service().relocate_directory(str(source), str(destination))

    assert os.path.islink(source)
    assert os.readlink(source) == str(destination)
    assert (destination / "000000010000000000000001").read_text(encoding="utf-8") == "wal"
