import sqlite3

import pytest

from netatmo_exporter.database import SCHEMA_VERSION, ensure_schema_and_migrate


def test_migration_creates_token_table_and_sets_user_version(tmp_path):
    db_file = str(tmp_path / "state.db")

    ensure_schema_and_migrate(db_file)

    conn = sqlite3.connect(db_file)
    ver = conn.execute("PRAGMA user_version").fetchone()[0]
    assert ver == SCHEMA_VERSION == 1

    cols = [r[1] for r in conn.execute("PRAGMA table_info(netatmo_cloud_tokens)").fetchall()]
    assert {'client_id', 'access_token', 'refresh_token', 'expires_at'} <= set(cols)
    conn.close()


def test_migration_keeps_existing_tokens(tmp_path):
    db_file = str(tmp_path / "state.db")
    ensure_schema_and_migrate(db_file)
    conn = sqlite3.connect(db_file)
    conn.execute("INSERT INTO netatmo_cloud_tokens (id, client_id, refresh_token) VALUES (1, 'app', 'rt')")
    conn.commit()
    conn.close()

    ensure_schema_and_migrate(db_file)

    conn = sqlite3.connect(db_file)
    rows = conn.execute("SELECT client_id, refresh_token FROM netatmo_cloud_tokens").fetchall()
    conn.close()
    assert rows == [('app', 'rt')]


def test_newer_schema_is_rejected(tmp_path):
    db_file = str(tmp_path / "state.db")
    conn = sqlite3.connect(db_file)
    conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION + 1}")
    conn.commit()
    conn.close()

    with pytest.raises(RuntimeError):
        ensure_schema_and_migrate(db_file)
