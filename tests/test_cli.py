from release_notifier import cli


def test_clear_cache_removes_database_files(tmp_path, capsys):
    db_path = tmp_path / "releases.db"
    for suffix in ("", "-wal", "-shm"):
        (tmp_path / f"releases.db{suffix}").write_text("x")

    assert cli.clear_cache(str(db_path)) == 0

    assert list(tmp_path.iterdir()) == []
    assert capsys.readouterr().out.count("Deleted") == 3


def test_clear_cache_without_database(tmp_path, capsys):
    assert cli.clear_cache(str(tmp_path / "missing.db")) == 0
    assert "No database file found" in capsys.readouterr().out


def test_invalid_configuration_exits_nonzero(monkeypatch, capsys):
    def broken_settings():
        raise ValueError("TELEGRAM_BOT_TOKEN is required")

    monkeypatch.setattr(cli, "get_settings", broken_settings)

    assert cli.main(["list-repos"]) == 1
    assert "invalid configuration" in capsys.readouterr().err
