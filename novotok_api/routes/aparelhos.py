from __future__ import annotations

import logging
import secrets
from typing import Any, Dict, Optional

from flask import Response

from novotok_api.database import db
from novotok_api.envelope import json_body, require_jwt
from novotok_api.errors import EntityNotFound, MalformedRequest
from novotok_api.responses import ApiBlueprint, ok
from novotok_api.validators import optional_text, parse_bool, parse_int


log = logging.getLogger(__name__)

bp = ApiBlueprint("aparelhos", __name__, url_prefix="/api/aparelhos")

CODE_LENGTH = 8


def _public(row: Dict[str, Any]) -> Dict[str, Any]:
	row = dict(row)
	row["autorized"] = bool(row["autorized"])
	return row


def _require_aparelho(cur: Any, aparelho_id: int) -> None:
	cur.execute("SELECT id FROM aparelhos WHERE id = %s", (aparelho_id,))
	if cur.fetchone() is None:
		raise EntityNotFound("Aparelho não encontrado.")


@bp.get("")
@require_jwt
def list_aparelhos() -> Response:
	with db.cursor() as cur:
		cur.execute(
			"""
			SELECT a.id, a.codaparelho, a.autorized, a.vendedor_id, a.created_at,
				v.nome AS vendedor_nome, v.rca AS vendedor_rca
			FROM aparelhos a
			LEFT JOIN vendedores v ON v.id = a.vendedor_id
			ORDER BY a.id DESC
			"""
		)
		rows = cur.fetchall()
	return ok("Aparelhos encontrados", aparelhos=[_public(r) for r in rows])


def _generate_code(cur: Any) -> str:
	while True:
		codigo = "".join(secrets.choice("0123456789") for _ in range(CODE_LENGTH))
		if not _find_by_code(cur, codigo):
			return codigo


def _find_by_code(cur: Any, codaparelho: str) -> Optional[Dict[str, Any]]:
	cur.execute("SELECT id, codaparelho FROM aparelhos WHERE codaparelho = %s", (codaparelho,))
	return cur.fetchone()


@bp.post("")
def register_aparelho() -> Response:
	"""Public: the mobile app calls this on first launch, before any login.

	A code the device already holds is echoed back with 200. Codes shorter
	than four characters, or no code at all, get a generated numeric one.
	"""
	body = json_body()
	codaparelho = optional_text(body.get("codaparelho"), "codaparelho")
	if codaparelho is not None:
		with db.cursor() as cur:
			existing = _find_by_code(cur, codaparelho)
		if existing:
			return ok("Aparelho já cadastrado.", id=existing["id"], codaparelho=codaparelho)
	with db.transaction() as cur:
		if codaparelho is None or len(codaparelho) < 4:
			codaparelho = _generate_code(cur)
		# New devices stay blocked until an operator authorizes them.
		cur.execute("INSERT INTO aparelhos (codaparelho, autorized) VALUES (%s, 0)", (codaparelho,))
		aparelho_id = cur.lastrowid
	log.info("device %s registered as %s", aparelho_id, codaparelho)
	return ok("Aparelho registrado com sucesso!", status=201, id=aparelho_id, codaparelho=codaparelho)


@bp.patch("/<int:aparelho_id>/autorizacao")
@require_jwt
def update_autorizacao(aparelho_id: int) -> Response:
	body = json_body()
	if body.get("autorized") is None:
		raise MalformedRequest("Campo autorized é obrigatório.")
	autorized = parse_bool(body["autorized"], "autorized")
	with db.transaction() as cur:
		_require_aparelho(cur, aparelho_id)
		cur.execute("UPDATE aparelhos SET autorized = %s WHERE id = %s", (int(autorized), aparelho_id))
	message = "Aparelho autorizado com sucesso." if autorized else "Aparelho bloqueado com sucesso."
	return ok(message, id=aparelho_id, autorized=autorized)


@bp.put("/<int:aparelho_id>/vendedor")
@require_jwt
def vincular_vendedor(aparelho_id: int) -> Response:
	body = json_body()
	if body.get("vendedor_id") is None:
		raise MalformedRequest("Campo vendedor_id é obrigatório.")
	vendedor_id = parse_int(body["vendedor_id"], "vendedor_id", minimum=1)
	with db.transaction() as cur:
		_require_aparelho(cur, aparelho_id)
		cur.execute("SELECT id FROM vendedores WHERE id = %s", (vendedor_id,))
		if cur.fetchone() is None:
			raise EntityNotFound("Vendedor não encontrado.")
		cur.execute("UPDATE aparelhos SET vendedor_id = %s WHERE id = %s", (vendedor_id, aparelho_id))
	return ok("Vendedor vinculado ao aparelho com sucesso.", id=aparelho_id, vendedor_id=vendedor_id)


@bp.delete("/<int:aparelho_id>/vendedor")
@require_jwt
def desvincular_vendedor(aparelho_id: int) -> Response:
	with db.transaction() as cur:
		_require_aparelho(cur, aparelho_id)
		cur.execute("UPDATE aparelhos SET vendedor_id = NULL WHERE id = %s", (aparelho_id,))
	return ok("Vendedor desvinculado do aparelho com sucesso.", id=aparelho_id, vendedor_id=None)
