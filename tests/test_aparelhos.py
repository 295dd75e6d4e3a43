import unittest

from tests.helpers import ApiTestCase


class AparelhoTests(ApiTestCase):
	def setUp(self):
		super().setUp()
		self.execute(
			"INSERT INTO produtos (codprod, descricao, pvenda, ativo) VALUES (%s, %s, %s, %s)",
			("A1", "Ativo", "5.00", 1),
		)
		self.execute(
			"INSERT INTO produtos (codprod, descricao, pvenda, ativo) VALUES (%s, %s, %s, %s)",
			("I1", "Inativo", "5.00", 0),
		)

	def _register(self, codigo="TAB-01"):
		return self.client.post("/api/aparelhos", json={"codaparelho": codigo})

	def _sync(self, codigo="TAB-01"):
		return self.client.post("/api/produtos/sincronizar", json={"codaparelho": codigo})

	def test_new_device_starts_blocked(self):
		self.assertEqual(self._register().status_code, 201)
		resp = self._sync()
		self.assertEqual(resp.status_code, 401)
		self.assertEqual(resp.get_json()["message"], "Dispositivo não autorizado.")
		self.assertEqual(self.count("sincronizacoes"), 0)

	def test_register_is_idempotent(self):
		first = self._register()
		resp = self._register()
		self.assertEqual(resp.status_code, 200)
		data = resp.get_json()
		self.assertEqual(data["message"], "Aparelho já cadastrado.")
		self.assertEqual((data["id"], data["codaparelho"]), (first.get_json()["id"], "TAB-01"))
		self.assertEqual(self.count("aparelhos"), 1)

	def test_register_generates_code(self):
		for body in ({}, {"codaparelho": "ab"}):
			resp = self.client.post("/api/aparelhos", json=body)
			self.assertEqual(resp.status_code, 201)
			codigo = resp.get_json()["codaparelho"]
			self.assertRegex(codigo, r"^\d{8}$")
		rows = self.query("SELECT codaparelho, autorized FROM aparelhos")
		self.assertEqual(len(rows), 2)
		self.assertTrue(all(r["autorized"] == 0 for r in rows))

	def test_authorization_still_requires_token(self):
		aparelho_id = self._register().get_json()["id"]
		resp = self.client.patch(f"/api/aparelhos/{aparelho_id}/autorizacao", json={"autorized": True})
		self.assertEqual(resp.status_code, 401)
		self.assertEqual(self.client.get("/api/aparelhos").status_code, 401)

	def test_authorized_sync_returns_active_products(self):
		aparelho_id = self._register().get_json()["id"]
		resp = self.client.patch(
			f"/api/aparelhos/{aparelho_id}/autorizacao", json={"autorized": True}, headers=self.headers
		)
		self.assertEqual(resp.status_code, 200)

		resp = self._sync()
		self.assertEqual(resp.status_code, 200)
		self.assertEqual([p["codprod"] for p in resp.get_json()["produtos"]], ["A1"])
		rows = self.query("SELECT * FROM sincronizacoes")
		self.assertEqual(len(rows), 1)
		self.assertEqual((rows[0]["codaparelho"], rows[0]["quantidade_produtos"]), ("TAB-01", 1))

	def test_sync_survives_audit_failure(self):
		aparelho_id = self._register().get_json()["id"]
		self.execute("UPDATE aparelhos SET autorized = 1 WHERE id = %s", (aparelho_id,))
		self.execute("DROP TABLE sincronizacoes")
		with self.assertLogs("novotok_api.routes.produtos", level="WARNING"):
			resp = self._sync()
		self.assertEqual(resp.status_code, 200)
		self.assertEqual(len(resp.get_json()["produtos"]), 1)

	def test_sync_requires_code(self):
		resp = self.client.post("/api/produtos/sincronizar", json={})
		self.assertEqual(resp.status_code, 400)

	def test_link_seller(self):
		aparelho_id = self._register().get_json()["id"]
		vendedor = self.client.post(
			"/api/vendedores", json={"rca": "300", "nome": "Fábio", "senha": "abc123"}, headers=self.headers
		)
		vendedor_id = vendedor.get_json()["id"]

		resp = self.client.put(f"/api/aparelhos/{aparelho_id}/vendedor", json={"vendedor_id": 999}, headers=self.headers)
		self.assertEqual(resp.status_code, 404)

		resp = self.client.put(
			f"/api/aparelhos/{aparelho_id}/vendedor", json={"vendedor_id": vendedor_id}, headers=self.headers
		)
		self.assertEqual(resp.status_code, 200)
		listing = self.client.get("/api/aparelhos", headers=self.headers).get_json()["aparelhos"]
		self.assertEqual(listing[0]["vendedor_rca"], "300")

		self.assertEqual(self.client.delete(f"/api/vendedores/{vendedor_id}", headers=self.headers).status_code, 200)
		listing = self.client.get("/api/aparelhos", headers=self.headers).get_json()["aparelhos"]
		self.assertIsNone(listing[0]["vendedor_id"])


if __name__ == "__main__":
	unittest.main()
