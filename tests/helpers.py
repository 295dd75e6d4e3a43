import datetime as dt
import os
import tempfile
import unittest
from typing import Any, Dict, List, Optional, Sequence

from werkzeug.security import generate_password_hash

from novotok_api import create_app
from novotok_api.auth.tokens import issue_token
from novotok_api.database import db


SECRET = "test-secret"
PASSWORD = "segredo123"
MENUS = [
	("Dashboard", "/dashboard", 1),
	("Usuários", "/usuarios", 2),
	("Clientes", "/clientes", 3),
]


class ApiTestCase(unittest.TestCase):
	"""Fresh SQLite database, seeded admin and a bearer token for every test."""

	config: Dict[str, Any] = {}

	def setUp(self) -> None:
		fd, self.db_path = tempfile.mkstemp(suffix=".db")
		os.close(fd)
		overrides = {
			"TESTING": True,
			"DATABASE_BACKEND": "sqlite",
			"SQLITE_PATH": self.db_path,
			"JWT_SECRET_KEY": SECRET,
			"EXPOSE_DB_ERRORS": False,
		}
		overrides.update(self.config)
		self.app = create_app(overrides)
		self.client = self.app.test_client()
		with self.app.app_context():
			db.init_schema()
			with db.transaction() as cur:
				for nome, rota, ordem in MENUS:
					cur.execute(
						"INSERT INTO menus (nome, rota, ordem) VALUES (%s, %s, %s)",
						(nome, rota, ordem),
					)
		self.user_id = self.seed_user("admin@novotok.com.br", cpf="11122233344", tipo="admin")
		self.token = self.mint_token(self.user_id)
		self.headers = {"Authorization": f"Bearer {self.token}"}

	def tearDown(self) -> None:
		os.remove(self.db_path)

	def seed_user(
		self,
		email: str,
		*,
		cpf: str,
		tipo: str = "operador",
		ativo: bool = True,
		password: str = PASSWORD,
	) -> int:
		granted = 1 if tipo == "admin" else 0
		with self.app.app_context():
			with db.transaction() as cur:
				cur.execute(
					"INSERT INTO usuarios (nome, email, senha, cpf, tipo_usuario, ativo) VALUES (%s,%s,%s,%s,%s,%s)",
					(email.split("@")[0], email, generate_password_hash(password), cpf, tipo, int(ativo)),
				)
				user_id = cur.lastrowid
				cur.execute("SELECT id FROM menus")
				for row in cur.fetchall():
					cur.execute(
						"""
						INSERT INTO permissoes_usuarios (usuario_id, menu_id, visualizar, criar, editar, excluir)
						VALUES (%s, %s, %s, %s, %s, %s)
						""",
						(user_id, row["id"], granted, granted, granted, granted),
					)
		return user_id

	def mint_token(
		self,
		user_id: Any,
		*,
		secret: str = SECRET,
		lifetime: dt.timedelta = dt.timedelta(days=7),
		now: Optional[dt.datetime] = None,
	) -> str:
		return issue_token(
			user_id,
			secret,
			issuer=self.app.config["JWT_ISSUER"],
			audience=self.app.config["JWT_AUDIENCE"],
			lifetime=lifetime,
			now=now,
		)

	def query(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
		with self.app.app_context():
			with db.cursor() as cur:
				cur.execute(sql, params)
				return cur.fetchall()

	def count(self, table: str) -> int:
		return int(self.query(f"SELECT COUNT(*) AS total FROM {table}")[0]["total"])

	def execute(self, sql: str, params: Sequence[Any] = ()) -> Optional[int]:
		with self.app.app_context():
			with db.transaction() as cur:
				cur.execute(sql, params)
				return cur.lastrowid

	# -------------------------
	# Fixtures through the API
	# -------------------------
	def create_filial(self, codigo: str = "001", cnpj: str = "12345678000190") -> int:
		resp = self.client.post(
			"/api/filiais",
			json={
				"codigo": codigo,
				"nome_fantasia": f"Loja {codigo}",
				"razao_social": f"Novotok Comércio {codigo} LTDA",
				"cnpj": cnpj,
			},
			headers=self.headers,
		)
		self.assertEqual(resp.status_code, 201, resp.get_data(as_text=True))
		return resp.get_json()["id"]
