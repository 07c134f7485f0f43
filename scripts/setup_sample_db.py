"""Launch a sample PostgreSQL container and register it as a pgbrowse profile."""

from __future__ import annotations

import argparse
import asyncio
import subprocess
import sys
import time
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from pgbrowse.config import CONFIG_FILE
from pgbrowse.errors import ConnectionFailedError
from pgbrowse.models import ConnectionProfile
from pgbrowse.profiles import ProfileStore
from pgbrowse.session import Session

DEFAULT_CONTAINER = "pgbrowse-sample-db"
DEFAULT_PORT = 5544
DEFAULT_PASSWORD = "pgbrowse"
DEFAULT_DB = "app"
DEFAULT_USER = "app"
DOCKER_IMAGE = "postgres:16-alpine"
PROFILE_ID = "docker-sample"

SEED_SQL = """
CREATE SCHEMA IF NOT EXISTS sales;
CREATE TABLE IF NOT EXISTS public.users (
    id SERIAL PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    profile JSONB,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
CREATE TABLE IF NOT EXISTS sales.orders (
    id SERIAL PRIMARY KEY,
    user_id INTEGER NOT NULL REFERENCES public.users(id),
    total NUMERIC(10,2) NOT NULL,
    status TEXT NOT NULL DEFAULT 'pending'
);
CREATE OR REPLACE VIEW sales.open_orders AS
    SELECT * FROM sales.orders WHERE status <> 'complete';
CREATE MATERIALIZED VIEW IF NOT EXISTS sales.revenue_by_user AS
    SELECT user_id, sum(total) AS revenue FROM sales.orders GROUP BY user_id;
INSERT INTO public.users (email, profile) VALUES
    ('anna@example.com', '{"plan": "pro"}'),
    ('ben@example.com', NULL),
    ('cara@example.com', '{"plan": "free"}')
ON CONFLICT (email) DO NOTHING;
INSERT INTO sales.orders (user_id, total, status)
SELECT id, (random() * 100)::numeric(10,2), 'complete' FROM public.users;
REFRESH MATERIALIZED VIEW sales.revenue_by_user;
""".strip()


def run(cmd: list[str], *, check: bool = True, **kwargs) -> subprocess.CompletedProcess[str]:
    print("$", " ".join(cmd))
    return subprocess.run(cmd, check=check, text=True, **kwargs)


def container_exists(name: str) -> bool:
    result = subprocess.run(
        ["docker", "ps", "-a", "--filter", f"name={name}", "--format", "{{.ID}}"],
        text=True,
        capture_output=True,
    )
    return bool(result.stdout.strip())


def start_container(args: argparse.Namespace) -> None:
    if container_exists(args.container):
        print(f"Container '{args.container}' already exists. Reusing it.")
        run(["docker", "start", args.container], check=False)
    else:
        run(
            [
                "docker", "run", "-d",
                "--name", args.container,
                "-e", f"POSTGRES_PASSWORD={args.password}",
                "-e", f"POSTGRES_DB={args.database}",
                "-e", f"POSTGRES_USER={args.user}",
                "-p", f"{args.port}:5432",
                DOCKER_IMAGE,
            ]
        )
    wait_until_ready(args.container, args.user)


def wait_until_ready(name: str, user: str, retries: int = 15, delay: float = 1.0) -> None:
    for _ in range(retries):
        result = subprocess.run(["docker", "exec", name, "pg_isready", "-U", user], text=True)
        if result.returncode == 0:
            return
        time.sleep(delay)
    print("Warning: database did not report ready state; continuing anyway.")


def seed_data(args: argparse.Namespace) -> None:
    run(
        ["docker", "exec", "-i", args.container, "psql", "-U", args.user, "-d", args.database, "-v", "ON_ERROR_STOP=1"],
        input=SEED_SQL,
    )


def register_profile(args: argparse.Namespace) -> ConnectionProfile:
    store = ProfileStore()
    existing = store.get(PROFILE_ID)
    if existing is not None:
        print("Profile 'Docker Sample' already present in config; leaving as-is.")
        return existing.with_password(existing.password or args.password)
    profile = store.save(
        ConnectionProfile(
            id=PROFILE_ID,
            name="Docker Sample",
            host="localhost",
            port=args.port,
            database=args.database,
            username=args.user,
            password=args.password,
            persist_password=True,
        )
    )
    print(f"Added 'Docker Sample' profile to {CONFIG_FILE}.")
    return profile


def verify_profile(profile: ConnectionProfile) -> bool:
    result = asyncio.run(Session().test_connection(profile))
    try:
        result.raise_for_failure()
    except ConnectionFailedError as exc:
        print(f"Could not reach the sample database: {exc.reason}")
        return False
    return True


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--container", default=DEFAULT_CONTAINER, help="Docker container name")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="Host port to expose Postgres on")
    parser.add_argument("--password", default=DEFAULT_PASSWORD, help="Postgres password")
    parser.add_argument("--database", default=DEFAULT_DB, help="Database name to create")
    parser.add_argument("--user", default=DEFAULT_USER, help="Database user")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv or sys.argv[1:])
    try:
        start_container(args)
        seed_data(args)
    except FileNotFoundError:
        print("Docker is not installed or not on PATH.")
        return 1
    profile = register_profile(args)
    if not verify_profile(profile):
        return 1
    print("Sample database is ready. Connect using the 'Docker Sample' profile.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
