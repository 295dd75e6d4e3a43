import unittest

import bcrypt

from tests.helpers import PASSWORD, ApiTestCase


class LoginTests(ApiTestCase):
	def _login(self, email, password):
		return self.client.post("/auth/login", json={"email": email, "password": password})

	def test_login_returns_token_and_menus(self):
		resp = self._login("admin@novotok.com.br", PASSWORD)
		self.assertEqual(resp.status_code, 200)
		data = resp.get_json()
		self.assertTrue(data["success"])
		self.assertEqual(data["usuario"]["id"], self.user_id)
		self.assertEqual([m["rota"] for m in data["menus"]], ["/dashboard", "/usuarios", "/clientes"])
		self.assertTrue(data["menus"][0]["permissoes"]["excluir"])

		me = self.client.get("/auth/me", headers={"Authorization": f"Bearer {data['token']}"})
		self.assertEqual(me.status_code, 200)
		self.assertEqual(me.get_json()["usuario"]["email"], "admin@novotok.com.br")
		self.assertNotIn("senha", me.get_json()["usuario"])

	def test_wrong_password(self):
		resp = self._login("admin@novotok.com.br", "errada")
		self.assertEqual(resp.status_code, 401)
		data = resp.get_json()
		self.assertEqual(data, {"success": False, "message": "Senha incorreta."})
		self.assertNotIn("token", data)

	def test_unknown_email(self):
		resp = self._login("ninguem@novotok.com.br", PASSWORD)
		self.assertEqual(resp.status_code, 401)
		self.assertEqual(resp.get_json()["message"], "Email não encontrado.")

	def test_inactive_user(self):
		self.seed_user("inativo@novotok.com.br", cpf="99988877766", ativo=False)
		resp = self._login("inativo@novotok.com.br", PASSWORD)
		self.assertEqual(resp.status_code, 401)
		self.assertEqual(resp.get_json()["message"], "Usuário inativo. Contate o administrador.")

	def test_missing_fields(self):
		resp = self.client.post("/auth/login", json={"email": "admin@novotok.com.br"})
		self.assertEqual(resp.status_code, 400)
		self.assertEqual(resp.get_json()["message"], "Email e senha são obrigatórios.")

	def test_operator_sees_no_menus(self):
		self.seed_user("operador@novotok.com.br", cpf="55566677788")
		resp = self._login("operador@novotok.com.br", PASSWORD)
		self.assertEqual(resp.status_code, 200)
		self.assertEqual(resp.get_json()["menus"], [])

	def test_non_text_credentials(self):
		resp = self.client.post("/auth/login", json={"email": {"a": 1}, "password": PASSWORD})
		self.assertEqual(resp.status_code, 400)
		self.assertEqual(resp.get_json()["message"], "Email e senha devem ser textos.")
		resp = self.client.post("/auth/login", json={"email": "admin@novotok.com.br", "password": [PASSWORD]})
		self.assertEqual(resp.status_code, 400)


class LegacyHashTests(ApiTestCase):
	def _store_hash(self, senha):
		self.execute("UPDATE usuarios SET senha = %s WHERE id = %s", (senha, self.user_id))

	def _login(self, password):
		return self.client.post("/auth/login", json={"email": "admin@novotok.com.br", "password": password})

	def test_php_bcrypt_hash(self):
		hashed = bcrypt.hashpw(PASSWORD.encode("utf-8"), bcrypt.gensalt(rounds=4)).decode("ascii")
		self._store_hash("$2y$" + hashed[4:])

		resp = self._login("errada")
		self.assertEqual(resp.status_code, 401)
		self.assertEqual(resp.get_json()["message"], "Senha incorreta.")
		self.assertEqual(self._login(PASSWORD).status_code, 200)

	def test_unrecognised_hash_is_a_mismatch(self):
		self._store_hash("argon9$c2FsdA$5f4dcc3b5aa765d61d8327deb882cf99")
		with self.assertLogs("novotok_api.auth.passwords", level="WARNING"):
			resp = self._login(PASSWORD)
		self.assertEqual(resp.status_code, 401)
		self.assertEqual(resp.get_json()["message"], "Senha incorreta.")


class SellerLoginTests(ApiTestCase):
	def setUp(self):
		super().setUp()
		self.filial_id = self.create_filial()
		resp = self.client.post(
			"/api/vendedores",
			json={"rca": "300", "nome": "Fábio", "senha": "abc123", "filial_id": self.filial_id},
			headers=self.headers,
		)
		self.vendedor_id = resp.get_json()["id"]

	def _login(self, rca, password):
		return self.client.post("/auth/login-vendedor", json={"rca": rca, "password": password})

	def test_login(self):
		resp = self._login("300", "abc123")
		self.assertEqual(resp.status_code, 200)
		data = resp.get_json()
		self.assertTrue(data["success"])
		self.assertEqual(
			(data["id"], data["nome"], data["rca"], data["filial_id"]),
			(self.vendedor_id, "Fábio", "300", self.filial_id),
		)
		self.assertTrue(data["token"])

	def test_numeric_rca(self):
		self.assertEqual(self._login(300, "abc123").status_code, 200)

	def test_seller_token_is_not_a_backoffice_session(self):
		token = self._login("300", "abc123").get_json()["token"]
		resp = self.client.get("/api/usuarios", headers={"Authorization": f"Bearer {token}"})
		self.assertEqual(resp.status_code, 401)

	def test_wrong_password(self):
		resp = self._login("300", "errada")
		self.assertEqual(resp.status_code, 401)
		self.assertEqual(resp.get_json(), {"success": False, "message": "Senha incorreta."})

	def test_unknown_rca(self):
		resp = self._login("999", "abc123")
		self.assertEqual(resp.status_code, 401)
		self.assertEqual(resp.get_json()["message"], "RCA não encontrado.")

	def test_inactive_seller(self):
		self.execute("UPDATE vendedores SET ativo = 0 WHERE id = %s", (self.vendedor_id,))
		resp = self._login("300", "abc123")
		self.assertEqual(resp.status_code, 401)

	def test_missing_fields(self):
		resp = self.client.post("/auth/login-vendedor", json={"rca": "300"})
		self.assertEqual(resp.status_code, 400)
		self.assertEqual(resp.get_json()["message"], "RCA e senha são obrigatórios.")


class AccountTests(ApiTestCase):
	def test_change_password_requires_current(self):
		resp = self.client.put(
			"/auth/me",
			json={"nome": "Admin", "nova_senha": "novasenha1", "senha_atual": "errada"},
			headers=self.headers,
		)
		self.assertEqual(resp.status_code, 400)
		self.assertEqual(resp.get_json()["message"], "Senha atual incorreta.")

		resp = self.client.put(
			"/auth/me",
			json={"nome": "Admin", "nova_senha": "novasenha1", "senha_atual": PASSWORD},
			headers=self.headers,
		)
		self.assertEqual(resp.status_code, 200)
		login = self.client.post("/auth/login", json={"email": "admin@novotok.com.br", "password": "novasenha1"})
		self.assertEqual(login.status_code, 200)


if __name__ == "__main__":
	unittest.main()
