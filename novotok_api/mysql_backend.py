from __future__ import annotations

from typing import Any, Optional

import MySQLdb
from flask import Flask
from flask_mysqldb import MySQL

from novotok_api.database import _split_statements


# MySQL server error numbers raised as IntegrityError.
DUPLICATE_ENTRY = 1062
ROW_IS_REFERENCED = (1217, 1451)
NO_REFERENCED_ROW = (1216, 1452)


class MySQLBackend:
	name = "mysql"
	begin_sql = "START TRANSACTION"
	schema_file = "mysql.sql"
	Error = MySQLdb.Error
	IntegrityError = MySQLdb.IntegrityError

	def __init__(self, app: Flask) -> None:
		# flask-mysqldb expects these keys
		app.config.setdefault("MYSQL_CURSORCLASS", "DictCursor")
		app.config.setdefault("MYSQL_AUTOCOMMIT", False)
		self.mysql = MySQL(app)

	def connection(self) -> Any:
		conn: Optional[Any] = self.mysql.connection
		if conn is None:
			raise MySQLdb.OperationalError("no application context for MySQL connection")
		return conn

	def apply_schema(self, script: str) -> None:
		conn = self.connection()
		cur = conn.cursor()
		try:
			for statement in _split_statements(script):
				cur.execute(statement)
			conn.commit()
		finally:
			cur.close()

	def integrity_kind(self, exc: MySQLdb.IntegrityError) -> str:
		errno = exc.args[0] if exc.args else None
		if errno == DUPLICATE_ENTRY:
			return "duplicate"
		if errno in ROW_IS_REFERENCED:
			return "in_use"
		if errno in NO_REFERENCED_ROW:
			return "missing_reference"
		return "invalid"
