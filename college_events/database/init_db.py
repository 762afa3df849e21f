"""
Schema bootstrap.

Creates the tables the services rely on. Every statement is idempotent, so
this can run against a fresh or an existing database:

    flask --app college_events.gateway.server init-db [--seed]
    python -m college_events.database.init_db [--seed]
"""

import logging
import sys
from typing import List

import click
from flask import Flask, current_app
from flask.cli import with_appcontext

from college_events.config import Settings
from college_events.database.db_connection import Database

SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS users (
        user_id SERIAL PRIMARY KEY,
        name VARCHAR(100) NOT NULL,
        email VARCHAR(100) UNIQUE NOT NULL,
        password VARCHAR(255) NOT NULL,
        department VARCHAR(50),
        year VARCHAR(10),
        role VARCHAR(20) NOT NULL DEFAULT 'student' CHECK (role = 'student'),
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS organisers (
        organiser_id SERIAL PRIMARY KEY,
        name VARCHAR(100) NOT NULL,
        email VARCHAR(100) UNIQUE NOT NULL,
        password VARCHAR(255) NOT NULL,
        department VARCHAR(50) NOT NULL,
        phone VARCHAR(15),
        is_active BOOLEAN DEFAULT TRUE,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS events (
        event_id SERIAL PRIMARY KEY,
        title VARCHAR(200) NOT NULL,
        description TEXT,
        date DATE NOT NULL,
        time TIME,
        location VARCHAR(200),
        category VARCHAR(50),
        capacity INTEGER CHECK (capacity IS NULL OR capacity > 0),
        organizer_id INTEGER NOT NULL REFERENCES organisers(organiser_id) ON DELETE CASCADE,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS registrations (
        registration_id SERIAL PRIMARY KEY,
        user_id INTEGER NOT NULL REFERENCES users(user_id) ON DELETE CASCADE,
        event_id INTEGER NOT NULL REFERENCES events(event_id) ON DELETE CASCADE,
        status VARCHAR(20) NOT NULL DEFAULT 'confirmed',
        registered_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        CONSTRAINT registrations_user_event_unique UNIQUE (user_id, event_id)
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_events_organizer_id ON events (organizer_id);",
    "CREATE INDEX IF NOT EXISTS idx_registrations_event_id ON registrations (event_id);",
]

REQUIRED_TABLES = ["users", "organisers", "events", "registrations"]

# Placeholder digest: it is not a valid argon2 hash, so these sample
# accounts can never log in until their password is reset.
PLACEHOLDER_PASSWORD_HASH = "$2b$10$examplehashedpassword"

SAMPLE_ORGANISERS = [
    ("Prof. Sharma", "sharma@college.edu", "Computer Science", "9876543211"),
    ("Dr. Verma", "verma@college.edu", "Electronics", "9876543212"),
]


def init_db(database: Database, seed: bool = False) -> None:
    """
    Create all tables and indexes if they do not exist yet.

    Args:
        database (Database): Pool to run the statements on.
        seed (bool): Also insert the sample organisers (skipped if present).
    """
    with database.connection() as conn:
        with conn.cursor() as cur:
            for statement in SCHEMA_STATEMENTS:
                cur.execute(statement)

            if seed:
                for name, email, department, phone in SAMPLE_ORGANISERS:
                    cur.execute(
                        """
                        INSERT INTO organisers (name, email, password, department, phone)
                        VALUES (%s, %s, %s, %s, %s)
                        ON CONFLICT (email) DO NOTHING;
                        """,
                        (name, email, PLACEHOLDER_PASSWORD_HASH, department, phone),
                    )

    logging.info(f"[DB] Schema ready ({', '.join(REQUIRED_TABLES)}){' with sample organisers' if seed else ''}")


def check_schema(database: Database) -> List[str]:
    """
    Return the names of required tables that are missing.
    """
    missing = []
    with database.connection() as conn:
        with conn.cursor() as cur:
            for table in REQUIRED_TABLES:
                cur.execute("SELECT to_regclass(%s);", (table,))
                if cur.fetchone()[0] is None:
                    missing.append(table)
    return missing


@click.command("init-db")
@click.option("--seed", is_flag=True, help="Insert sample organisers.")
@with_appcontext
def init_db_command(seed: bool) -> None:
    """Create the database tables."""
    database: Database = current_app.extensions["college_events.db"]
    init_db(database, seed=seed)
    missing = check_schema(database)
    if missing:
        raise click.ClickException(f"Tables still missing: {', '.join(missing)}")
    click.echo("Database initialised.")


def register_cli(app: Flask) -> None:
    app.cli.add_command(init_db_command)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(asctime)s - %(message)s")
    db = Database.from_settings(Settings.from_env())
    try:
        init_db(db, seed="--seed" in sys.argv[1:])
        missing_tables = check_schema(db)
    finally:
        db.close()

    if missing_tables:
        print(f"Tables still missing: {', '.join(missing_tables)}")
        sys.exit(1)
    print("Database initialised.")
