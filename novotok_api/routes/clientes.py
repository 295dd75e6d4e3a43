from __future__ import annotations

from typing import Any, Dict, List, Tuple

from flask import Response, request

from novotok_api.database import db
from novotok_api.envelope import json_body, require_jwt
from novotok_api.errors import Conflict, EntityNotFound, MalformedRequest
from novotok_api.pagination import page_params, paginate
from novotok_api.responses import ApiBlueprint, ok
from novotok_api.validators import optional_text, parse_bool, parse_date, parse_document, required_text, validate_email


bp = ApiBlueprint("clientes", __name__, url_prefix="/api/clientes")

_FLAGS = ("novo", "atualizado", "recused")


def _public(row: Dict[str, Any]) -> Dict[str, Any]:
	row = dict(row)
	for flag in _FLAGS:
		row[flag] = bool(row[flag])
	return row


def _parse_cliente(body: Dict[str, Any]) -> Tuple[Any, ...]:
	if body.get("name") is None or body.get("person_identification_number") is None:
		raise MalformedRequest("Dados incompletos. Nome e CPF/CNPJ são obrigatórios.")
	name = required_text(body["name"], "Nome é obrigatório.")
	documento = parse_document(body["person_identification_number"], "CPF/CNPJ")
	email = optional_text(body.get("email"))
	if email:
		validate_email(email)
	return (
		name,
		documento,
		email,
		optional_text(body.get("billingPhone")),
		optional_text(body.get("rca")),
		optional_text(body.get("filial")),
	)


def _check_documento(cur: Any, documento: str, exclude_id: int = 0) -> None:
	cur.execute(
		"SELECT id FROM clientes WHERE person_identification_number = %s AND id <> %s",
		(documento, exclude_id),
	)
	if cur.fetchone():
		raise Conflict("CPF/CNPJ já cadastrado.")


@bp.get("")
@require_jwt
def list_clientes() -> Response:
	page, per_page = page_params(request.args)
	where: List[str] = []
	params: List[Any] = []

	rca = request.args.get("rca")
	filial = request.args.get("filial")
	busca = request.args.get("busca")
	data_inicio = request.args.get("data_inicio")
	data_fim = request.args.get("data_fim")
	if rca:
		where.append("rca = %s")
		params.append(rca)
	if filial:
		where.append("filial = %s")
		params.append(filial)
	if busca:
		where.append("(name LIKE %s OR person_identification_number LIKE %s OR email LIKE %s OR billingPhone LIKE %s)")
		params.extend([f"%{busca}%"] * 4)
	for flag in _FLAGS:
		value = request.args.get(flag)
		if value is not None:
			where.append(f"{flag} = %s")
			params.append(1 if parse_bool(value, flag) else 0)
	if data_inicio:
		where.append("DATE(created_at) >= %s")
		params.append(parse_date(data_inicio, "data_inicio"))
	if data_fim:
		where.append("DATE(created_at) <= %s")
		params.append(parse_date(data_fim, "data_fim"))

	clause = (" WHERE " + " AND ".join(where)) if where else ""
	with db.cursor() as cur:
		rows, meta = paginate(
			cur,
			f"SELECT * FROM clientes{clause} ORDER BY created_at DESC, id DESC",
			f"SELECT COUNT(*) AS total FROM clientes{clause}",
			params,
			page,
			per_page,
		)
	return ok("Clientes encontrados", clientes=[_public(r) for r in rows], **meta)


@bp.get("/estatisticas")
@require_jwt
def estatisticas() -> Response:
	with db.cursor() as cur:
		cur.execute(
			"""
			SELECT COUNT(*) AS total,
				COALESCE(SUM(CASE WHEN novo = 1 AND recused = 0 THEN 1 ELSE 0 END), 0) AS novos,
				COALESCE(SUM(CASE WHEN atualizado = 1 AND recused = 0 THEN 1 ELSE 0 END), 0) AS atualizados,
				COALESCE(SUM(CASE WHEN recused = 1 THEN 1 ELSE 0 END), 0) AS recusados
			FROM clientes
			"""
		)
		row = cur.fetchone()
	return ok("Estatísticas de clientes", estatisticas={k: int(v) for k, v in row.items()})


@bp.post("")
@require_jwt
def create_cliente() -> Response:
	values = _parse_cliente(json_body())
	with db.transaction() as cur:
		_check_documento(cur, values[1])
		cur.execute(
			"""
			INSERT INTO clientes (name, person_identification_number, email, billingPhone, rca, filial, novo)
			VALUES (%s,%s,%s,%s,%s,%s,1)
			""",
			values,
		)
		cliente_id = cur.lastrowid
	return ok("Cliente cadastrado com sucesso!", status=201, id=cliente_id)


@bp.get("/<int:cliente_id>")
@require_jwt
def get_cliente(cliente_id: int) -> Response:
	with db.cursor() as cur:
		cur.execute("SELECT * FROM clientes WHERE id = %s", (cliente_id,))
		row = cur.fetchone()
	if row is None:
		raise EntityNotFound("Cliente não encontrado.")
	return ok("Cliente encontrado", cliente=_public(row))


@bp.put("/<int:cliente_id>")
@require_jwt
def update_cliente(cliente_id: int) -> Response:
	body = json_body()
	values = _parse_cliente(body)
	recused = parse_bool(body.get("recused", False), "recused")
	with db.transaction() as cur:
		cur.execute("SELECT id FROM clientes WHERE id = %s", (cliente_id,))
		if cur.fetchone() is None:
			raise EntityNotFound("Cliente não encontrado.")
		_check_documento(cur, values[1], exclude_id=cliente_id)
		cur.execute(
			"""
			UPDATE clientes SET name=%s, person_identification_number=%s, email=%s, billingPhone=%s,
				rca=%s, filial=%s, novo=0, atualizado=1, recused=%s, updated_at=CURRENT_TIMESTAMP
			WHERE id=%s
			""",
			values + (int(recused), cliente_id),
		)
	return ok("Cliente atualizado com sucesso!", id=cliente_id)


@bp.delete("/<int:cliente_id>")
@require_jwt
def delete_cliente(cliente_id: int) -> Response:
	with db.transaction() as cur:
		cur.execute("DELETE FROM clientes WHERE id = %s", (cliente_id,))
		if cur.rowcount == 0:
			raise EntityNotFound("Cliente não encontrado.")
	return ok("Cliente excluído com sucesso!", deleted=True, id=cliente_id)
