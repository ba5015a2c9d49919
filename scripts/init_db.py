#!/usr/bin/env python3
"""
Initialize the wealth tracker database.

Run this script to create the database schema. The database path comes
from settings.json, or from WEALTH_TRACKER_DB when it is set.
"""
from wealth_tracker.config.settings import Settings
from wealth_tracker.database.connection import SCHEMA_PATH, DatabaseConfig, DatabaseManager


def main():
    """initialize the database."""

    config = DatabaseConfig.from_settings(Settings.load())
    print(f"Initializing database at: {config.connection_string}")

    with DatabaseManager(config) as db:
        print(f"Executing schema from: {SCHEMA_PATH}")
        db.initialize_schema()

        applied = db.schema_version()
        if applied:
            version, description = applied
            print("✓ Database initialized successfully!")
            print(f"  Schema version: {version}")
            print(f"  Description: {description}")
        else:
            print("✗ Database initialization may have failed")


if __name__ == "__main__":
    main()
