from __future__ import annotations

from typing import Any, Dict, List, Optional

from flask import Response, request

from novotok_api.auth.passwords import hash_password
from novotok_api.database import db
from novotok_api.envelope import json_body, require_jwt
from novotok_api.errors import Conflict, EntityNotFound, MalformedRequest
from novotok_api.pagination import page_params, paginate
from novotok_api.responses import ApiBlueprint, ok
from novotok_api.validators import optional_text, parse_bool, parse_int, parse_password, required_text, validate_email


bp = ApiBlueprint("vendedores", __name__, url_prefix="/api/vendedores")

_SELECT = """
	SELECT v.id, v.rca, v.nome, v.email, v.filial_id, v.ativo, v.created_at,
		f.nome_fantasia AS filial_nome
	FROM vendedores v
	LEFT JOIN filiais f ON f.id = v.filial_id
"""


def _public(row: Dict[str, Any]) -> Dict[str, Any]:
	row = dict(row)
	row["ativo"] = bool(row["ativo"])
	return row


def _check_filial(cur: Any, filial_id: Any) -> Optional[int]:
	if filial_id is None or filial_id == "":
		return None
	filial_id = parse_int(filial_id, "filial_id", minimum=1)
	cur.execute("SELECT id FROM filiais WHERE id = %s", (filial_id,))
	if cur.fetchone() is None:
		raise EntityNotFound("Filial não encontrada.")
	return filial_id


def _check_rca(cur: Any, rca: str, exclude_id: int = 0) -> None:
	cur.execute("SELECT id FROM vendedores WHERE rca = %s AND id <> %s", (rca, exclude_id))
	if cur.fetchone():
		raise Conflict("RCA já está em uso.")


@bp.get("")
@require_jwt
def list_vendedores() -> Response:
	page, per_page = page_params(request.args)
	where: List[str] = []
	params: List[Any] = []

	filial_id = request.args.get("filial_id")
	ativo = request.args.get("ativo")
	busca = request.args.get("busca")
	if filial_id:
		where.append("v.filial_id = %s")
		params.append(parse_int(filial_id, "filial_id", minimum=1))
	if ativo is not None:
		where.append("v.ativo = %s")
		params.append(1 if parse_bool(ativo, "ativo") else 0)
	if busca:
		where.append("(v.nome LIKE %s OR v.rca LIKE %s)")
		params.extend([f"%{busca}%", f"%{busca}%"])

	clause = (" WHERE " + " AND ".join(where)) if where else ""
	with db.cursor() as cur:
		rows, meta = paginate(
			cur,
			f"{_SELECT}{clause} ORDER BY v.nome ASC",
			f"SELECT COUNT(*) AS total FROM vendedores v{clause}",
			params,
			page,
			per_page,
		)
	return ok("Vendedores encontrados", vendedores=[_public(r) for r in rows], **meta)


@bp.post("")
@require_jwt
def create_vendedor() -> Response:
	body = json_body()
	if any(body.get(f) is None for f in ("rca", "nome", "senha")):
		raise MalformedRequest("Dados incompletos. RCA, nome e senha são obrigatórios.")
	rca = required_text(body["rca"], "RCA é obrigatório.")
	nome = required_text(body["nome"], "Nome é obrigatório.")
	senha = parse_password(body["senha"])
	if not senha:
		raise MalformedRequest("Senha é obrigatória.")
	email = optional_text(body.get("email"))
	if email:
		validate_email(email)
	ativo = parse_bool(body.get("ativo", True), "ativo")

	with db.transaction() as cur:
		filial_id = _check_filial(cur, body.get("filial_id"))
		_check_rca(cur, rca)
		cur.execute(
			"INSERT INTO vendedores (rca, nome, email, senha, filial_id, ativo) VALUES (%s,%s,%s,%s,%s,%s)",
			(rca, nome, email, hash_password(senha), filial_id, int(ativo)),
		)
		vendedor_id = cur.lastrowid
	return ok("Vendedor cadastrado com sucesso!", status=201, id=vendedor_id)


@bp.get("/<int:vendedor_id>")
@require_jwt
def get_vendedor(vendedor_id: int) -> Response:
	with db.cursor() as cur:
		cur.execute(f"{_SELECT} WHERE v.id = %s", (vendedor_id,))
		row = cur.fetchone()
	if row is None:
		raise EntityNotFound("Vendedor não encontrado.")
	return ok("Vendedor encontrado", vendedor=_public(row))


@bp.put("/<int:vendedor_id>")
@require_jwt
def update_vendedor(vendedor_id: int) -> Response:
	body = json_body()
	if any(body.get(f) is None for f in ("rca", "nome")):
		raise MalformedRequest("Dados incompletos. RCA e nome são obrigatórios.")
	rca = required_text(body["rca"], "RCA é obrigatório.")
	nome = required_text(body["nome"], "Nome é obrigatório.")
	email = optional_text(body.get("email"))
	if email:
		validate_email(email)
	ativo = parse_bool(body.get("ativo", True), "ativo")
	senha = parse_password(body["senha"]) if body.get("senha") else None

	with db.transaction() as cur:
		cur.execute("SELECT id FROM vendedores WHERE id = %s", (vendedor_id,))
		if cur.fetchone() is None:
			raise EntityNotFound("Vendedor não encontrado.")
		filial_id = _check_filial(cur, body.get("filial_id"))
		_check_rca(cur, rca, exclude_id=vendedor_id)
		cur.execute(
			"UPDATE vendedores SET rca=%s, nome=%s, email=%s, filial_id=%s, ativo=%s WHERE id=%s",
			(rca, nome, email, filial_id, int(ativo), vendedor_id),
		)
		if senha:
			cur.execute(
				"UPDATE vendedores SET senha=%s WHERE id=%s",
				(hash_password(senha), vendedor_id),
			)
	return ok("Vendedor atualizado com sucesso!", id=vendedor_id)


@bp.patch("/<int:vendedor_id>/status")
@require_jwt
def update_status(vendedor_id: int) -> Response:
	body = json_body()
	if body.get("ativo") is None:
		raise MalformedRequest("Campo ativo é obrigatório.")
	ativo = parse_bool(body["ativo"], "ativo")
	with db.transaction() as cur:
		cur.execute("SELECT id FROM vendedores WHERE id = %s", (vendedor_id,))
		if cur.fetchone() is None:
			raise EntityNotFound("Vendedor não encontrado.")
		cur.execute("UPDATE vendedores SET ativo=%s WHERE id=%s", (int(ativo), vendedor_id))
	message = "Vendedor ativado com sucesso!" if ativo else "Vendedor desativado com sucesso!"
	return ok(message, id=vendedor_id, ativo=ativo)


@bp.delete("/<int:vendedor_id>")
@require_jwt
def delete_vendedor(vendedor_id: int) -> Response:
	with db.transaction() as cur:
		cur.execute("UPDATE aparelhos SET vendedor_id = NULL WHERE vendedor_id = %s", (vendedor_id,))
		cur.execute("DELETE FROM vendedores WHERE id = %s", (vendedor_id,))
		if cur.rowcount == 0:
			raise EntityNotFound("Vendedor não encontrado.")
	return ok("Vendedor excluído com sucesso!", deleted=True, id=vendedor_id)
