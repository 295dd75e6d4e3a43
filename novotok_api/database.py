"""Per-request database connections.

``db.cursor()`` is the read path. ``db.transaction()`` is the only path that
commits: it begins a transaction, yields a cursor, commits when the block
exits cleanly and rolls back on any exception. A handler with several
dependent writes therefore runs them all in one ``with db.transaction()``.

Statements use ``%s`` placeholders and rows come back as dicts on every
backend.
"""
from __future__ import annotations

import datetime as dt
import logging
import re
import sqlite3
from contextlib import contextmanager
from decimal import Decimal
from importlib import resources
from typing import Any, Dict, Iterator, List, Optional, Sequence

from flask import Flask, current_app, g

from novotok_api.errors import Conflict, EntityNotFound, InternalError, MalformedRequest


log = logging.getLogger(__name__)

EXTENSION_KEY = "novotok_db"

sqlite3.register_adapter(Decimal, str)
sqlite3.register_adapter(dt.date, lambda d: d.isoformat())
sqlite3.register_adapter(dt.datetime, lambda d: d.isoformat(" "))


# Quoted literals are matched first so a '%s' inside them stays text.
# '%%' is a literal percent, as with MySQLdb.
_PLACEHOLDER = re.compile(r"'(?:[^']|'')*'|%s|%%")


def _qmark(match: "re.Match[str]") -> str:
	token = match.group(0)
	if token == "%s":
		return "?"
	if token == "%%":
		return "%"
	return token.replace("%%", "%")


def _split_statements(script: str) -> List[str]:
	lines = [line for line in script.splitlines() if not line.strip().startswith("--")]
	return [s.strip() for s in "\n".join(lines).split(";") if s.strip()]


# -------------------------
# SQLite backend
# -------------------------
class _SQLiteCursor:
	def __init__(self, cursor: sqlite3.Cursor) -> None:
		self._cursor = cursor

	def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
		try:
			self._cursor.execute(_PLACEHOLDER.sub(_qmark, sql), tuple(params))
		except sqlite3.IntegrityError as exc:
			exc.verb = sql.lstrip().split(None, 1)[0].upper()
			raise
		return self._cursor.rowcount

	def fetchone(self) -> Optional[Dict[str, Any]]:
		row = self._cursor.fetchone()
		return dict(row) if row is not None else None

	def fetchall(self) -> List[Dict[str, Any]]:
		return [dict(r) for r in self._cursor.fetchall()]

	@property
	def lastrowid(self) -> Optional[int]:
		return self._cursor.lastrowid

	@property
	def rowcount(self) -> int:
		return self._cursor.rowcount

	@property
	def description(self) -> Any:
		return self._cursor.description

	def close(self) -> None:
		self._cursor.close()


class _SQLiteConnection:
	def __init__(self, conn: sqlite3.Connection) -> None:
		self._conn = conn

	def cursor(self) -> _SQLiteCursor:
		return _SQLiteCursor(self._conn.cursor())

	def commit(self) -> None:
		self._conn.commit()

	def rollback(self) -> None:
		self._conn.rollback()

	def close(self) -> None:
		self._conn.close()

	def executescript(self, script: str) -> None:
		self._conn.executescript(script)


class SQLiteBackend:
	name = "sqlite"
	begin_sql = "BEGIN"
	schema_file = "sqlite.sql"
	Error = sqlite3.Error
	IntegrityError = sqlite3.IntegrityError

	def __init__(self, app: Flask) -> None:
		self.path = app.config.get("SQLITE_PATH", "novotok.db")
		app.teardown_appcontext(self.teardown)

	def connection(self) -> _SQLiteConnection:
		conn = g.get("_sqlite_conn")
		if conn is None:
			# isolation_level=None: statements autocommit unless we issue BEGIN ourselves.
			raw = sqlite3.connect(self.path, isolation_level=None, check_same_thread=False)
			raw.row_factory = sqlite3.Row
			raw.execute("PRAGMA foreign_keys = ON")
			conn = _SQLiteConnection(raw)
			g._sqlite_conn = conn
		return conn

	def teardown(self, exc: Optional[BaseException]) -> None:
		conn = g.pop("_sqlite_conn", None)
		if conn is not None:
			conn.close()

	def integrity_kind(self, exc: sqlite3.IntegrityError) -> str:
		message = str(exc)
		if message.startswith("UNIQUE constraint failed"):
			return "duplicate"
		if message.startswith("FOREIGN KEY constraint failed"):
			# SQLite does not say which side of the key failed.
			return "in_use" if getattr(exc, "verb", "") == "DELETE" else "missing_reference"
		return "invalid"

	def apply_schema(self, script: str) -> None:
		self.connection().executescript(script)


def _load_backend(app: Flask) -> Any:
	name = (app.config.get("DATABASE_BACKEND") or "mysql").lower()
	if name == "sqlite":
		return SQLiteBackend(app)
	if name == "mysql":
		# Only MySQL deployments need the MySQLdb client library.
		from novotok_api.mysql_backend import MySQLBackend

		return MySQLBackend(app)
	raise RuntimeError(f"Unsupported DATABASE_BACKEND {name!r}")


# -------------------------
# Connection provider
# -------------------------
class Database:
	def __init__(self, app: Optional[Flask] = None) -> None:
		if app is not None:
			self.init_app(app)

	def init_app(self, app: Flask) -> None:
		app.extensions[EXTENSION_KEY] = _load_backend(app)

	@property
	def backend(self) -> Any:
		return current_app.extensions[EXTENSION_KEY]

	def connection(self) -> Any:
		backend = self.backend
		try:
			return backend.connection()
		except backend.Error as exc:
			log.exception("database connection failed")
			raise self._internal("Erro ao conectar ao banco de dados.", exc) from exc

	@contextmanager
	def cursor(self) -> Iterator[Any]:
		backend = self.backend
		cur = self.connection().cursor()
		try:
			yield cur
		except backend.Error as exc:
			raise self.translate(exc) from exc
		finally:
			cur.close()

	@contextmanager
	def transaction(self) -> Iterator[Any]:
		backend = self.backend
		conn = self.connection()
		cur = conn.cursor()
		try:
			cur.execute(backend.begin_sql)
			yield cur
			conn.commit()
		except backend.Error as exc:
			conn.rollback()
			raise self.translate(exc) from exc
		except BaseException:
			conn.rollback()
			raise
		finally:
			cur.close()

	def translate(self, exc: Exception) -> Exception:
		if isinstance(exc, self.backend.IntegrityError):
			kind = self.backend.integrity_kind(exc)
			log.info("integrity error (%s): %s", kind, exc)
			if kind == "duplicate":
				return Conflict("Registro duplicado.")
			if kind == "in_use":
				return Conflict("Registro em uso por outro cadastro.")
			if kind == "missing_reference":
				return EntityNotFound("Registro relacionado não encontrado.")
			return MalformedRequest("Dados inválidos para o cadastro.")
		log.error("database error: %s", exc, exc_info=exc)
		return self._internal("Erro no servidor.", exc)

	def _internal(self, message: str, exc: Exception) -> InternalError:
		if current_app.config.get("EXPOSE_DB_ERRORS"):
			return InternalError(message, error=str(exc))
		return InternalError(message)

	def init_schema(self) -> None:
		backend = self.backend
		script = resources.files("novotok_api.schema").joinpath(backend.schema_file).read_text("utf-8")
		backend.apply_schema(script)


db = Database()
