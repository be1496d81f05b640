import logging
import shutil
import sqlite3
import threading
from contextlib import contextmanager, nullcontext
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from app.domain.exceptions import RepositoryError
from infrastructure.database.ops.commands import CommandOperations
from infrastructure.database.ops.telemetry import TelemetryOperations

logger = logging.getLogger(__name__)

MEMORY_DATABASE = ":memory:"


class SQLiteDatabaseHandler(CommandOperations, TelemetryOperations):
    """Thread-safe SQLite handler backing the command log and telemetry sink.

    File databases get one connection per thread (WAL mode lets the
    arbitrator, the ingress handlers and the simulation loop write
    concurrently). An in-memory database cannot be shared that way, so it uses
    a single connection serialized by a lock.
    """

    def __init__(self, database_path: str, *, busy_timeout_s: float = 5.0) -> None:
        self._database_path = database_path
        self._busy_timeout_s = busy_timeout_s
        self._local = threading.local()
        self._shared: Optional[sqlite3.Connection] = None
        self._shared_lock = threading.RLock()

        if not self.is_memory:
            db_path = Path(database_path)
            if not db_path.parent.exists():
                db_path.parent.mkdir(parents=True, exist_ok=True)
                logger.info("Created database directory: %s", db_path.parent)

    @property
    def is_memory(self) -> bool:
        return self._database_path == MEMORY_DATABASE

    @property
    def database_path(self) -> str:
        return self._database_path

    # --- Lifecycle ------------------------------------------------------------
    def init_db(self) -> None:
        """Open a connection and make sure the schema exists.

        Raises :class:`RepositoryError` when the store cannot be opened, which
        the supervisor treats as an initialization failure of the calling unit.
        """
        try:
            self.create_tables()
        except sqlite3.Error as exc:
            raise RepositoryError(f"Cannot initialize database {self._database_path}: {exc}") from exc

    def get_db(self) -> sqlite3.Connection:
        if self.is_memory:
            with self._shared_lock:
                if self._shared is None:
                    self._shared = self._open_connection()
                return self._shared

        connection: Optional[sqlite3.Connection] = getattr(self._local, "connection", None)
        if connection is None:
            try:
                connection = self._open_connection()
            except sqlite3.DatabaseError as exc:
                if self._is_corruption_error(exc):
                    logger.error("Database appears corrupt (%s). Recreating a fresh database.", exc)
                    self._quarantine_corrupt_db()
                    connection = self._open_connection()
                else:
                    raise
            self._local.connection = connection
        return connection

    def _open_connection(self) -> sqlite3.Connection:
        connection = sqlite3.connect(
            self._database_path,
            timeout=self._busy_timeout_s,
            check_same_thread=False,
        )
        try:
            connection.row_factory = sqlite3.Row
            self._configure_connection(connection)
            return connection
        except Exception:
            connection.close()
            raise

    def _is_corruption_error(self, exc: sqlite3.Error) -> bool:
        message = str(exc).lower()
        return (
            "database disk image is malformed" in message
            or "file is not a database" in message
            or "file is encrypted or is not a database" in message
        )

    def _quarantine_corrupt_db(self) -> Optional[Path]:
        db_path = Path(self._database_path)
        if not db_path.exists():
            return None

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        quarantine_dir = db_path.parent / "corrupt"
        quarantine_dir.mkdir(parents=True, exist_ok=True)

        suffix = db_path.suffix or ".db"
        quarantined = quarantine_dir / f"{db_path.stem}_corrupt_{timestamp}{suffix}"
        try:
            shutil.move(str(db_path), str(quarantined))
            for sidecar_suffix in ("-wal", "-shm"):
                sidecar = Path(f"{db_path}{sidecar_suffix}")
                if sidecar.exists():
                    shutil.move(str(sidecar), str(quarantine_dir / f"{sidecar.name}_{timestamp}"))
            logger.warning("Quarantined corrupt database to %s", quarantined)
            return quarantined
        except OSError as exc:
            logger.error("Failed to quarantine corrupt database %s: %s", db_path, exc)
            return None

    def _configure_connection(self, connection: sqlite3.Connection) -> None:
        """Configure the connection for many small concurrent writes.

        - WAL mode: readers never block the single writer
        - NORMAL synchronous: safe with WAL, far fewer fsyncs per telemetry row
        """
        if not self.is_memory:
            connection.execute("PRAGMA journal_mode=WAL")
            connection.execute("PRAGMA synchronous=NORMAL")
        connection.execute("PRAGMA temp_store=MEMORY")
        connection.commit()

    def close_thread_connection(self) -> None:
        """Close the calling thread's own connection; the shared in-memory one stays open."""
        if self.is_memory:
            return
        connection: Optional[sqlite3.Connection] = getattr(self._local, "connection", None)
        if connection is not None:
            connection.close()
            del self._local.connection

    def close_db(self) -> None:
        """Close the calling thread's connection (or the shared one)."""
        if self.is_memory:
            with self._shared_lock:
                if self._shared is not None:
                    self._shared.close()
                    self._shared = None
            return
        self.close_thread_connection()

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection; commit on success, roll back on error."""
        guard = self._shared_lock if self.is_memory else nullcontext()
        with guard:
            conn = self.get_db()
            try:
                yield conn
            except BaseException:
                conn.rollback()
                raise
            else:
                conn.commit()

    # --- Schema ----------------------------------------------------------------
    def create_tables(self) -> None:
        """Creates the command log and telemetry tables if they do not exist."""
        with self.connection() as db:
            db.execute(
                """
                CREATE TABLE IF NOT EXISTS Commands (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    client_id TEXT NOT NULL,
                    percent_change REAL NOT NULL,
                    issued_via TEXT NOT NULL,
                    submitted_at TEXT NOT NULL,
                    processed INTEGER NOT NULL DEFAULT 0,
                    processed_at TEXT,
                    processed_by TEXT
                )
                """
            )
            db.execute(
                "CREATE INDEX IF NOT EXISTS idx_commands_pending ON Commands (processed, submitted_at, id)"
            )
            db.execute(
                """
                CREATE TABLE IF NOT EXISTS Telemetry (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp TEXT NOT NULL,
                    gas_level REAL NOT NULL,
                    battery_level REAL NOT NULL,
                    motor_speed REAL NOT NULL,
                    set_point REAL NOT NULL,
                    motor_temp REAL NOT NULL
                )
                """
            )
            db.execute("CREATE INDEX IF NOT EXISTS idx_telemetry_timestamp ON Telemetry (timestamp)")
        logger.debug("Schema ready in %s", self._database_path)
