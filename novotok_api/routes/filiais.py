from __future__ import annotations

from typing import Any, Dict, Tuple

from flask import Response, request

from novotok_api.database import db
from novotok_api.envelope import json_body, require_jwt
from novotok_api.errors import Conflict, EntityNotFound, MalformedRequest
from novotok_api.pagination import page_params, paginate
from novotok_api.responses import ApiBlueprint, ok
from novotok_api.validators import only_digits, optional_text, parse_cnpj, required_text, validate_email


bp = ApiBlueprint("filiais", __name__, url_prefix="/api/filiais")

_FIELDS = (
	"codigo", "nome_fantasia", "razao_social", "cnpj", "ie", "telefone",
	"email", "cep", "logradouro", "numero", "complemento",
)


def _parse_filial(body: Dict[str, Any]) -> Tuple[Any, ...]:
	if any(body.get(f) is None for f in ("codigo", "nome_fantasia", "razao_social", "cnpj")):
		raise MalformedRequest(
			"Dados incompletos. Código, Nome Fantasia, Razão Social e CNPJ são obrigatórios."
		)
	codigo = required_text(body["codigo"], "Código é obrigatório.")
	nome_fantasia = required_text(body["nome_fantasia"], "Nome Fantasia é obrigatório.")
	razao_social = required_text(body["razao_social"], "Razão Social é obrigatória.")
	cnpj = parse_cnpj(body["cnpj"])
	email = optional_text(body.get("email"))
	if email:
		validate_email(email)
	cep = only_digits(body.get("cep")) or None
	if cep and len(cep) != 8:
		raise MalformedRequest("CEP deve conter 8 dígitos.")
	return (
		codigo,
		nome_fantasia,
		razao_social,
		cnpj,
		optional_text(body.get("ie")),
		optional_text(body.get("telefone")),
		email,
		cep,
		optional_text(body.get("logradouro")),
		optional_text(body.get("numero")),
		optional_text(body.get("complemento")),
	)


def _ensure_unique(cur: Any, codigo: str, cnpj: str, exclude_id: int = 0) -> None:
	cur.execute("SELECT COUNT(*) AS total FROM filiais WHERE codigo = %s AND id <> %s", (codigo, exclude_id))
	if cur.fetchone()["total"]:
		raise Conflict("Código já está em uso.")
	cur.execute("SELECT COUNT(*) AS total FROM filiais WHERE cnpj = %s AND id <> %s", (cnpj, exclude_id))
	if cur.fetchone()["total"]:
		raise Conflict("CNPJ já está em uso.")


@bp.get("")
@require_jwt
def list_filiais() -> Response:
	busca = request.args.get("busca")
	where = ""
	params: Tuple[Any, ...] = ()
	if busca:
		where = " WHERE codigo LIKE %s OR nome_fantasia LIKE %s OR cnpj LIKE %s"
		params = (f"%{busca}%",) * 3

	with db.cursor() as cur:
		if "page" not in request.args and "per_page" not in request.args:
			# Dropdowns load every branch in one go.
			cur.execute(f"SELECT * FROM filiais{where} ORDER BY codigo ASC", params)
			return ok("Filiais encontradas", filiais=cur.fetchall())
		page, per_page = page_params(request.args)
		rows, meta = paginate(
			cur,
			f"SELECT * FROM filiais{where} ORDER BY codigo ASC",
			f"SELECT COUNT(*) AS total FROM filiais{where}",
			params,
			page,
			per_page,
		)
	return ok("Filiais encontradas", filiais=rows, **meta)


@bp.post("")
@require_jwt
def create_filial() -> Response:
	values = _parse_filial(json_body())
	with db.transaction() as cur:
		_ensure_unique(cur, values[0], values[3])
		cur.execute(
			f"INSERT INTO filiais ({', '.join(_FIELDS)}) VALUES ({', '.join(['%s'] * len(_FIELDS))})",
			values,
		)
		filial_id = cur.lastrowid
	return ok("Filial cadastrada com sucesso!", status=201, id=filial_id)


@bp.get("/<int:filial_id>")
@require_jwt
def get_filial(filial_id: int) -> Response:
	with db.cursor() as cur:
		cur.execute("SELECT * FROM filiais WHERE id = %s", (filial_id,))
		row = cur.fetchone()
	if row is None:
		raise EntityNotFound("Filial não encontrada.")
	return ok("Filial encontrada", filial=row)


@bp.put("/<int:filial_id>")
@require_jwt
def update_filial(filial_id: int) -> Response:
	values = _parse_filial(json_body())
	with db.transaction() as cur:
		cur.execute("SELECT id FROM filiais WHERE id = %s", (filial_id,))
		if cur.fetchone() is None:
			raise EntityNotFound("Filial não encontrada.")
		_ensure_unique(cur, values[0], values[3], exclude_id=filial_id)
		assignments = ", ".join(f"{f}=%s" for f in _FIELDS)
		cur.execute(f"UPDATE filiais SET {assignments} WHERE id=%s", values + (filial_id,))
	return ok("Filial atualizada com sucesso!", id=filial_id)


@bp.delete("/<int:filial_id>")
@require_jwt
def delete_filial(filial_id: int) -> Response:
	with db.transaction() as cur:
		cur.execute("SELECT COUNT(*) AS total FROM vendedores WHERE filial_id = %s", (filial_id,))
		if cur.fetchone()["total"]:
			raise Conflict("Filial possui vendedores vinculados e não pode ser excluída.")
		cur.execute("DELETE FROM filiais WHERE id = %s", (filial_id,))
		if cur.rowcount == 0:
			raise EntityNotFound("Filial não encontrada.")
	return ok("Filial excluída com sucesso!", deleted=True, id=filial_id)
