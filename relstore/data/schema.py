"""SQLite DDL for relstore catalog snapshots.

Defines the tables holding saved table definitions, sequences and rows.
Used by SnapshotRepoSQLite to ensure tables exist on first access.
"""

SCHEMA_DDL = """
CREATE TABLE IF NOT EXISTS catalog_tables (
    name        TEXT PRIMARY KEY,
    position    INTEGER NOT NULL UNIQUE,
    definition  TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS catalog_sequences (
    name        TEXT PRIMARY KEY,
    table_name  TEXT NOT NULL REFERENCES catalog_tables(name),
    column_name TEXT NOT NULL,
    start       INTEGER NOT NULL DEFAULT 1,
    increment   INTEGER NOT NULL DEFAULT 1,
    last_value  INTEGER
);

CREATE TABLE IF NOT EXISTS catalog_rows (
    table_name  TEXT NOT NULL REFERENCES catalog_tables(name),
    position    INTEGER NOT NULL,
    data        TEXT NOT NULL,
    PRIMARY KEY (table_name, position)
);

CREATE INDEX IF NOT EXISTS idx_catalog_sequences_table
    ON catalog_sequences(table_name);
"""
