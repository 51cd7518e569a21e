"""Bring the database schema to the latest Alembic revision at startup.

Several workers may boot at once, so the upgrade runs under an exclusive file
lock next to ``alembic.ini``. Databases created before Alembic tracked them are
recognised by the tables they already hold and stamped accordingly.
"""

from __future__ import annotations

import errno
import logging
import os
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional, Sequence

from alembic import command
from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import create_engine, inspect
from sqlalchemy.engine.reflection import Inspector

from .database import SQLALCHEMY_DATABASE_URL

LOGGER = logging.getLogger(__name__)

BACKEND_DIR = Path(__file__).resolve().parent.parent
LOCK_FILENAME = ".alembic-migration.lock"
LOCK_RETRY_DELAY = 0.25
LOCK_TIMEOUT_ENV = "ALEMBIC_MIGRATION_LOCK_TIMEOUT"
DEFAULT_LOCK_TIMEOUT = 30.0

if os.name == "posix":  # pragma: no cover - platform specific
    import fcntl
else:  # pragma: no cover - platform specific
    import msvcrt

RevisionSentinel = tuple[str, Callable[[Inspector], bool]]


def _table_exists(inspector: Inspector, table_name: str) -> bool:
    return inspector.has_table(table_name)


def _index_exists(inspector: Inspector, table_name: str, index_name: str) -> bool:
    if not inspector.has_table(table_name):
        return False
    return index_name in {index["name"] for index in inspector.get_indexes(table_name)}


def _column_exists(inspector: Inspector, table_name: str, column_name: str) -> bool:
    if not inspector.has_table(table_name):
        return False
    return column_name in {column["name"] for column in inspector.get_columns(table_name)}


# Newest first; the first matching probe names the revision to stamp.
REVISION_SENTINELS: Sequence[RevisionSentinel] = (
    (
        "20261019_0002",
        lambda inspector: (
            _table_exists(inspector, "user_activity_log")
            and _index_exists(inspector, "user_activity_log", "user_activity_log_action_idx")
        ),
    ),
    (
        "20261019_0001",
        lambda inspector: (
            _table_exists(inspector, "terminals")
            and _column_exists(inspector, "users", "wrong_password_count")
        ),
    ),
)


def _determine_latest_revision(
    inspector: Inspector, sentinels: Iterable[RevisionSentinel]
) -> Optional[str]:
    for revision, check in sentinels:
        if check(inspector):
            return revision
    return None


def _read_lock_timeout() -> float:
    raw = os.getenv(LOCK_TIMEOUT_ENV)
    if not raw:
        return DEFAULT_LOCK_TIMEOUT
    try:
        value = float(raw)
    except ValueError:
        value = 0.0
    if value <= 0:
        LOGGER.warning(
            "Ignoring %s=%r; waiting %.1f seconds for the migration lock",
            LOCK_TIMEOUT_ENV,
            raw,
            DEFAULT_LOCK_TIMEOUT,
        )
        return DEFAULT_LOCK_TIMEOUT
    return value


def _lock_is_held_elsewhere(error: OSError) -> bool:
    if isinstance(error, BlockingIOError):
        return True
    if getattr(error, "errno", None) in {errno.EACCES, errno.EAGAIN, errno.EBUSY}:
        return True
    # Windows lock and sharing violations.
    return getattr(error, "winerror", None) in {32, 33}


def _try_lock(handle) -> None:
    if os.name == "posix":  # pragma: no cover - platform specific
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
    else:  # pragma: no cover - platform specific
        msvcrt.locking(handle.fileno(), msvcrt.LK_NBLCK, 1)


def _unlock(handle) -> None:
    try:
        if os.name == "posix":  # pragma: no cover - platform specific
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
        else:  # pragma: no cover - platform specific
            msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)
    except OSError as error:  # pragma: no cover - platform specific
        LOGGER.warning("Could not release migration lock: %s", error)


@contextmanager
def _migration_lock(path: Path, *, timeout: float) -> Iterator[None]:
    path.parent.mkdir(parents=True, exist_ok=True)
    deadline = time.monotonic() + timeout
    with path.open("a+") as handle:
        while True:
            try:
                _try_lock(handle)
                break
            except OSError as error:
                if not _lock_is_held_elsewhere(error):
                    raise
                if time.monotonic() >= deadline:
                    raise TimeoutError("Timed out waiting for the migration lock") from error
                time.sleep(LOCK_RETRY_DELAY)
        LOGGER.debug("Holding migration lock at %s", path)
        try:
            yield
        finally:
            _unlock(handle)


def _alembic_config(database_url: str) -> Config:
    config = Config(str(BACKEND_DIR / "alembic.ini"))
    config.set_main_option("script_location", str(BACKEND_DIR / "alembic"))
    # ConfigParser interpolation treats "%" specially.
    config.set_main_option("sqlalchemy.url", database_url.replace("%", "%%"))
    return config


def _upgrade(config: Config, database_url: str) -> None:
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    engine = create_engine(database_url, connect_args=connect_args)
    try:
        inspector = inspect(engine)
        untracked = not inspector.has_table("alembic_version") and any(
            table != "alembic_version" for table in inspector.get_table_names()
        )
        detected = (
            _determine_latest_revision(inspector, REVISION_SENTINELS) if untracked else None
        )
    finally:
        engine.dispose()

    if detected is not None:
        LOGGER.info("Existing schema matches revision %s; stamping before upgrade", detected)
        command.stamp(config, detected)
        if detected == ScriptDirectory.from_config(config).get_current_head():
            return
    elif untracked:
        LOGGER.info("Found tables without Alembic metadata; running full upgrade")

    command.upgrade(config, "head")


def run_database_migrations() -> None:
    """Run Alembic migrations so the required tables exist before serving requests."""

    if str(BACKEND_DIR) not in sys.path:
        sys.path.insert(0, str(BACKEND_DIR))

    database_url = os.getenv("DATABASE_URL") or SQLALCHEMY_DATABASE_URL
    config = _alembic_config(database_url)
    LOGGER.info("Running database migrations")

    with _migration_lock(BACKEND_DIR / LOCK_FILENAME, timeout=_read_lock_timeout()):
        _upgrade(config, database_url)
