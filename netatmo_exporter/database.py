#
# Copyright 2025 The NetatmoExporter contributors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#

"""Database schema for the Netatmo exporter state file."""

import logging
import sqlite3

logger = logging.getLogger(__name__)

# Supported schema version for this codebase
SCHEMA_VERSION = 1

CLOUD_SCHEMA = """
CREATE TABLE IF NOT EXISTS netatmo_cloud_tokens (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    client_id TEXT,
    access_token TEXT,
    refresh_token TEXT,
    token_type TEXT,
    expires_at REAL,
    scope TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""


def ensure_schema_and_migrate(db_path: str):
    """Ensure the schema exists and stamp it with PRAGMA user_version.

    Raises:
        RuntimeError: If the database was written by a newer version
    """
    conn = sqlite3.connect(db_path)
    try:
        row = conn.execute("PRAGMA user_version").fetchone()
        current_version = row[0] if row else 0
        if current_version > SCHEMA_VERSION:
            raise RuntimeError(
                f"Database schema version ({current_version}) is newer than supported ({SCHEMA_VERSION})"
            )

        conn.executescript(CLOUD_SCHEMA)

        if current_version < SCHEMA_VERSION:
            conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
            logger.info(f"Migrated state database {db_path} to schema version {SCHEMA_VERSION}")
        conn.commit()
    finally:
        conn.close()
