from __future__ import annotations

import datetime as dt
import logging
from decimal import Decimal
from typing import Any, Dict, Tuple

from flask import Response, request

from novotok_api.database import db
from novotok_api.envelope import json_body, require_jwt
from novotok_api.errors import Conflict, EntityNotFound, InternalError, MalformedRequest, Unauthenticated
from novotok_api.pagination import page_params, paginate
from novotok_api.responses import ApiBlueprint, ok
from novotok_api.validators import optional_text, parse_bool, parse_decimal, required_text


log = logging.getLogger(__name__)

bp = ApiBlueprint("produtos", __name__, url_prefix="/api/produtos")

_COLUMNS = "id, codprod, codauxiliar, descricao, pvenda, ativo"


def _public(row: Dict[str, Any]) -> Dict[str, Any]:
	row = dict(row)
	row["ativo"] = bool(row["ativo"])
	return row


def _parse_produto(body: Dict[str, Any]) -> Tuple[Any, ...]:
	if any(body.get(f) is None for f in ("codprod", "descricao", "pvenda")):
		raise MalformedRequest("Dados incompletos. codprod, descricao e pvenda são obrigatórios.")
	return (
		required_text(body["codprod"], "codprod é obrigatório."),
		optional_text(body.get("codauxiliar")),
		required_text(body["descricao"], "Descrição é obrigatória."),
		parse_decimal(body["pvenda"], "pvenda", minimum=Decimal("0")),
		int(parse_bool(body.get("ativo", True), "ativo")),
	)


def _check_codprod(cur: Any, codprod: str, exclude_id: int = 0) -> None:
	cur.execute("SELECT id FROM produtos WHERE codprod = %s AND id <> %s", (codprod, exclude_id))
	if cur.fetchone():
		raise Conflict("Código de produto já cadastrado.")


@bp.get("")
@require_jwt
def list_produtos() -> Response:
	page, per_page = page_params(request.args)
	busca = request.args.get("busca")
	clause = ""
	params: Tuple[Any, ...] = ()
	if busca:
		clause = " WHERE descricao LIKE %s OR codprod LIKE %s OR codauxiliar LIKE %s"
		params = (f"%{busca}%",) * 3
	with db.cursor() as cur:
		rows, meta = paginate(
			cur,
			f"SELECT {_COLUMNS} FROM produtos{clause} ORDER BY descricao ASC",
			f"SELECT COUNT(*) AS total FROM produtos{clause}",
			params,
			page,
			per_page,
		)
	return ok("Produtos encontrados", produtos=[_public(r) for r in rows], **meta)


@bp.get("/codauxiliar/<codauxiliar>")
@require_jwt
def buscar_por_codauxiliar(codauxiliar: str) -> Response:
	with db.cursor() as cur:
		cur.execute(f"SELECT {_COLUMNS} FROM produtos WHERE codauxiliar = %s", (codauxiliar,))
		row = cur.fetchone()
	if row is None:
		raise EntityNotFound("Produto não encontrado.")
	# The app scanner screen expects a list even for a single hit.
	return ok("Produto encontrado.", produtos=[_public(row)])


@bp.post("")
@require_jwt
def create_produto() -> Response:
	values = _parse_produto(json_body())
	with db.transaction() as cur:
		_check_codprod(cur, values[0])
		cur.execute(
			"INSERT INTO produtos (codprod, codauxiliar, descricao, pvenda, ativo) VALUES (%s,%s,%s,%s,%s)",
			values,
		)
		produto_id = cur.lastrowid
	return ok("Produto cadastrado com sucesso!", status=201, id=produto_id)


@bp.put("/<int:produto_id>")
@require_jwt
def update_produto(produto_id: int) -> Response:
	values = _parse_produto(json_body())
	with db.transaction() as cur:
		cur.execute("SELECT id FROM produtos WHERE id = %s", (produto_id,))
		if cur.fetchone() is None:
			raise EntityNotFound("Produto não encontrado.")
		_check_codprod(cur, values[0], exclude_id=produto_id)
		cur.execute(
			"UPDATE produtos SET codprod=%s, codauxiliar=%s, descricao=%s, pvenda=%s, ativo=%s WHERE id=%s",
			values + (produto_id,),
		)
	return ok("Produto atualizado com sucesso!", id=produto_id)


@bp.delete("/<int:produto_id>")
@require_jwt
def delete_produto(produto_id: int) -> Response:
	with db.transaction() as cur:
		cur.execute("DELETE FROM produtos WHERE id = %s", (produto_id,))
		if cur.rowcount == 0:
			raise EntityNotFound("Produto não encontrado.")
	return ok("Produto excluído com sucesso!", deleted=True, id=produto_id)


# -------------------------
# Device catalog sync
# -------------------------
def _record_sync(codaparelho: str, quantidade: int) -> None:
	"""Audit row for a device sync. Failure here never fails the sync itself."""
	try:
		with db.transaction() as cur:
			cur.execute(
				"""
				INSERT INTO sincronizacoes (codaparelho, quantidade_produtos, data_sincronizacao)
				VALUES (%s, %s, %s)
				""",
				(codaparelho, quantidade, dt.datetime.now().replace(microsecond=0)),
			)
	except (Conflict, InternalError) as exc:
		log.warning("could not record sync for device %s: %s", codaparelho, exc.description)


@bp.post("/sincronizar")
def sincronizar() -> Response:
	# Devices authenticate with their registered code, not a bearer token.
	body = json_body()
	codaparelho = optional_text(body.get("codaparelho"))
	if codaparelho is None:
		raise MalformedRequest("Parâmetro codaparelho é obrigatório.")

	with db.cursor() as cur:
		cur.execute("SELECT id, autorized FROM aparelhos WHERE codaparelho = %s", (codaparelho,))
		aparelho = cur.fetchone()
		if aparelho is None or int(aparelho["autorized"]) != 1:
			log.info("sync refused for device %s", codaparelho)
			raise Unauthenticated("Dispositivo não autorizado.")
		cur.execute(f"SELECT {_COLUMNS} FROM produtos WHERE ativo = 1 ORDER BY descricao ASC")
		produtos = [_public(r) for r in cur.fetchall()]

	_record_sync(codaparelho, len(produtos))
	return ok("Produtos sincronizados com sucesso.", produtos=produtos)
