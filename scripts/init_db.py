#!/usr/bin/env python3
"""
Initialize the OrçaMais local database.

Creates the SQLite file at ORCAMAIS_DB_PATH (default data/orcamais.db)
and applies the schema. The application does this on first use too; the
script is handy to check the database before running the CLI.
"""
from orcamais.config.settings import Settings
from orcamais.database.connection import DatabaseConfig, DatabaseManager


def main():
    """initialize the database."""

    settings = Settings.from_env()
    config = DatabaseConfig(settings.db_path)
    print(f"Initializing database at: {config.db_path}")

    with DatabaseManager(config) as db:
        conn = db.get_connection()

        row = conn.execute(
            "SELECT version, description FROM schema_version ORDER BY version DESC LIMIT 1"
        ).fetchone()

        if row:
            print("✓ Database initialized successfully!")
            print(f"  Schema version: {row['version']}")
            print(f"  Description: {row['description']}")
        else:
            print("✗ Database initialization may have failed")

        accounts = conn.execute("SELECT COUNT(*) AS total FROM accounts").fetchone()
        print(f"  Local accounts: {accounts['total']}")


if __name__ == "__main__":
    main()
