"""Product goal groups and store goals.

The goals screens read ``status: 1/0`` instead of ``success``, and camelCase
payload keys.
"""
from __future__ import annotations

import datetime as dt
import uuid
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from flask import Response, request

from novotok_api.database import db
from novotok_api.envelope import json_body, require_jwt
from novotok_api.errors import Conflict, EntityNotFound, MalformedRequest
from novotok_api.responses import ApiBlueprint, ok
from novotok_api.validators import optional_text, parse_bool, parse_decimal, parse_int, required_text


grupos_bp = ApiBlueprint("grupos_metas", __name__, url_prefix="/api/grupos-metas", flag="status")
lojas_bp = ApiBlueprint("metas_lojas", __name__, url_prefix="/api/metas-lojas", flag="status")

MESES = {
	1: "Janeiro", 2: "Fevereiro", 3: "Março", 4: "Abril",
	5: "Maio", 6: "Junho", 7: "Julho", 8: "Agosto",
	9: "Setembro", 10: "Outubro", 11: "Novembro", 12: "Dezembro",
}

ItemRow = Tuple[str, int, Decimal]


def _new_id(prefix: str) -> str:
	return f"{prefix}_{uuid.uuid4().hex}"


def nome_mes(mes: int) -> str:
	return MESES.get(mes, "Mês inválido")


# -------------------------
# Goal groups
# -------------------------
def _parse_itens(metas: Any) -> List[ItemRow]:
	if not isinstance(metas, list) or not metas:
		raise MalformedRequest("É necessário fornecer pelo menos uma meta.")
	itens: List[ItemRow] = []
	for index, meta in enumerate(metas, start=1):
		if not isinstance(meta, dict) or any(
			meta.get(k) is None for k in ("nomeProdutoMarca", "qtdMeta", "percentualSobreVenda")
		):
			raise MalformedRequest(
				f"Meta {index} está incompleta. Forneça nomeProdutoMarca, qtdMeta e percentualSobreVenda."
			)
		nome = required_text(meta["nomeProdutoMarca"], f"Nome do produto/marca é obrigatório na meta {index}.")
		try:
			qtd = parse_int(meta["qtdMeta"], "qtdMeta", minimum=0)
			percentual = parse_decimal(meta["percentualSobreVenda"], "percentualSobreVenda", minimum=Decimal("0"))
		except MalformedRequest:
			raise MalformedRequest(
				f"Quantidade e percentual devem ser números válidos e não negativos na meta {index}."
			)
		itens.append((nome, qtd, percentual))
	return itens


def _parse_grupo(body: Dict[str, Any]) -> Tuple[str, str, List[ItemRow], bool]:
	if any(body.get(k) is None for k in ("nome", "descricao", "metas")):
		raise MalformedRequest("Dados incompletos. Forneça nome, descricao e metas.")
	nome = required_text(body["nome"], "Nome do grupo é obrigatório.")
	descricao = optional_text(body["descricao"], "descricao") or ""
	itens = _parse_itens(body["metas"])
	ativo = parse_bool(body.get("ativo", True), "ativo")
	return nome, descricao, itens, ativo


def _insert_itens(cur: Any, grupo_id: str, itens: List[ItemRow]) -> None:
	for nome, qtd, percentual in itens:
		cur.execute(
			"""
			INSERT INTO metas_produtos_grupo (id, grupo_id, nome_produto_marca, qtd_meta, percentual_sobre_venda)
			VALUES (%s, %s, %s, %s, %s)
			""",
			(_new_id("meta"), grupo_id, nome, qtd, percentual),
		)


def _grupo_payload(grupo: Dict[str, Any], itens: List[Dict[str, Any]]) -> Dict[str, Any]:
	return {
		"id": grupo["id"],
		"nome": grupo["nome"],
		"descricao": grupo["descricao"],
		"metas": [
			{
				"id": m["id"],
				"nomeProdutoMarca": m["nome_produto_marca"],
				"qtdMeta": int(m["qtd_meta"]),
				"percentualSobreVenda": float(m["percentual_sobre_venda"]),
			}
			for m in itens
		],
		"dataCriacao": grupo["data_criacao"],
		"ativo": bool(grupo["ativo"]),
		"totalMetas": len(itens),
	}


def _load_grupo(cur: Any, grupo_id: str) -> Optional[Dict[str, Any]]:
	cur.execute("SELECT * FROM grupos_metas_produtos WHERE id = %s", (grupo_id,))
	grupo = cur.fetchone()
	if grupo is None:
		return None
	cur.execute(
		"SELECT * FROM metas_produtos_grupo WHERE grupo_id = %s ORDER BY nome_produto_marca",
		(grupo_id,),
	)
	return _grupo_payload(grupo, cur.fetchall())


@grupos_bp.get("")
@require_jwt
def list_grupos() -> Response:
	ativo = request.args.get("ativo")
	clause = ""
	params: Tuple[Any, ...] = ()
	if ativo is not None:
		clause = " WHERE ativo = %s"
		params = (1 if parse_bool(ativo, "ativo") else 0,)
	with db.cursor() as cur:
		cur.execute(f"SELECT * FROM grupos_metas_produtos{clause} ORDER BY nome ASC", params)
		grupos = cur.fetchall()
		cur.execute("SELECT * FROM metas_produtos_grupo ORDER BY nome_produto_marca")
		itens_por_grupo: Dict[str, List[Dict[str, Any]]] = {}
		for item in cur.fetchall():
			itens_por_grupo.setdefault(item["grupo_id"], []).append(item)
	data = [_grupo_payload(g, itens_por_grupo.get(g["id"], [])) for g in grupos]
	return ok("Grupos de metas encontrados", data=data, total=len(data))


@grupos_bp.post("")
@require_jwt
def create_grupo() -> Response:
	nome, descricao, itens, ativo = _parse_grupo(json_body())
	grupo_id = _new_id("grupo")
	with db.transaction() as cur:
		cur.execute("SELECT id FROM grupos_metas_produtos WHERE nome = %s", (nome,))
		if cur.fetchone():
			raise Conflict("Já existe um grupo com este nome.")
		cur.execute(
			"INSERT INTO grupos_metas_produtos (id, nome, descricao, data_criacao, ativo) VALUES (%s, %s, %s, %s, %s)",
			(grupo_id, nome, descricao, dt.date.today(), int(ativo)),
		)
		_insert_itens(cur, grupo_id, itens)
	with db.cursor() as cur:
		data = _load_grupo(cur, grupo_id)
	return ok("Grupo de metas cadastrado com sucesso", status=201, data=data)


@grupos_bp.get("/<grupo_id>")
@require_jwt
def get_grupo(grupo_id: str) -> Response:
	with db.cursor() as cur:
		data = _load_grupo(cur, grupo_id)
	if data is None:
		raise EntityNotFound("Grupo de metas não encontrado.")
	return ok("Grupo de metas encontrado", data=data)


@grupos_bp.put("/<grupo_id>")
@require_jwt
def update_grupo(grupo_id: str) -> Response:
	nome, descricao, itens, ativo = _parse_grupo(json_body())
	with db.transaction() as cur:
		cur.execute("SELECT id FROM grupos_metas_produtos WHERE id = %s", (grupo_id,))
		if cur.fetchone() is None:
			raise EntityNotFound("Grupo de metas não encontrado.")
		cur.execute("SELECT id FROM grupos_metas_produtos WHERE nome = %s AND id <> %s", (nome, grupo_id))
		if cur.fetchone():
			raise Conflict("Já existe um grupo com este nome.")
		cur.execute(
			"UPDATE grupos_metas_produtos SET nome=%s, descricao=%s, ativo=%s WHERE id=%s",
			(nome, descricao, int(ativo), grupo_id),
		)
		cur.execute("DELETE FROM metas_produtos_grupo WHERE grupo_id = %s", (grupo_id,))
		_insert_itens(cur, grupo_id, itens)
	with db.cursor() as cur:
		data = _load_grupo(cur, grupo_id)
	return ok("Grupo de metas atualizado com sucesso", data=data)


@grupos_bp.delete("/<grupo_id>")
@require_jwt
def delete_grupo(grupo_id: str) -> Response:
	with db.transaction() as cur:
		cur.execute("SELECT COUNT(*) AS total FROM metas_lojas WHERE grupo_meta_id = %s", (grupo_id,))
		if cur.fetchone()["total"]:
			raise Conflict("Grupo de metas está em uso por metas de lojas e não pode ser excluído.")
		cur.execute("DELETE FROM metas_produtos_grupo WHERE grupo_id = %s", (grupo_id,))
		cur.execute("DELETE FROM grupos_metas_produtos WHERE id = %s", (grupo_id,))
		if cur.rowcount == 0:
			raise EntityNotFound("Grupo de metas não encontrado.")
	return ok("Grupo de metas excluído com sucesso", data={"id": grupo_id})


# -------------------------
# Store goals
# -------------------------
_LOJA_SELECT = """
	SELECT ml.id, ml.loja_id, ml.nome_loja, ml.mes, ml.ano, ml.grupo_meta_id, ml.ativo, ml.data_criacao,
		gmp.nome AS grupo_meta_nome, gmp.descricao AS grupo_meta_descricao,
		(SELECT COUNT(*) FROM metas_produtos_grupo mpg WHERE mpg.grupo_id = ml.grupo_meta_id)
			AS total_metas_produtos
	FROM metas_lojas ml
	LEFT JOIN grupos_metas_produtos gmp ON ml.grupo_meta_id = gmp.id
"""


def _loja_payload(row: Dict[str, Any]) -> Dict[str, Any]:
	mes = int(row["mes"])
	return {
		"id": row["id"],
		"lojaId": row["loja_id"],
		"nomeLoja": row["nome_loja"],
		"mes": mes,
		"nomeMes": nome_mes(mes),
		"ano": int(row["ano"]),
		"periodo": f"{nome_mes(mes)}/{row['ano']}",
		"grupoMetaId": row["grupo_meta_id"],
		"grupoMetaNome": row["grupo_meta_nome"],
		"grupoMetaDescricao": row["grupo_meta_descricao"],
		"totalMetasProdutos": int(row["total_metas_produtos"] or 0),
		"dataCriacao": row["data_criacao"],
		"ativo": bool(row["ativo"]),
	}


def _load_meta_loja(cur: Any, meta_id: str) -> Optional[Dict[str, Any]]:
	cur.execute(f"{_LOJA_SELECT} WHERE ml.id = %s", (meta_id,))
	row = cur.fetchone()
	return _loja_payload(row) if row else None


def _set_ativo(meta_id: str, ativo: bool) -> Response:
	with db.cursor() as cur:
		cur.execute("SELECT id, ativo FROM metas_lojas WHERE id = %s", (meta_id,))
		meta = cur.fetchone()
	if meta is None:
		raise EntityNotFound("Meta de loja não encontrada.")
	if bool(meta["ativo"]) == ativo:
		already = "Meta já está ativa." if ativo else "Meta já finalizada."
		return ok(already, data={"id": meta_id, "ativo": ativo})
	with db.transaction() as cur:
		cur.execute("UPDATE metas_lojas SET ativo = %s WHERE id = %s", (int(ativo), meta_id))
	message = "Meta reativada com sucesso." if ativo else "Meta finalizada com sucesso."
	return ok(message, data={"id": meta_id, "ativo": ativo})


@lojas_bp.get("")
@require_jwt
def list_metas_lojas() -> Response:
	where: List[str] = []
	params: List[Any] = []
	loja_id = request.args.get("loja_id")
	mes = request.args.get("mes")
	ano = request.args.get("ano")
	ativo = request.args.get("ativo")
	if loja_id:
		where.append("ml.loja_id = %s")
		params.append(loja_id)
	if mes:
		where.append("ml.mes = %s")
		params.append(parse_int(mes, "mes", minimum=1, maximum=12))
	if ano:
		where.append("ml.ano = %s")
		params.append(parse_int(ano, "ano", minimum=2020, maximum=2050))
	if ativo is not None:
		where.append("ml.ativo = %s")
		params.append(1 if parse_bool(ativo, "ativo") else 0)
	clause = (" WHERE " + " AND ".join(where)) if where else ""
	with db.cursor() as cur:
		cur.execute(f"{_LOJA_SELECT}{clause} ORDER BY ml.ano DESC, ml.mes DESC, ml.nome_loja ASC", tuple(params))
		data = [_loja_payload(r) for r in cur.fetchall()]
	return ok("Metas de lojas encontradas", data=data, total=len(data))


def _parse_meta_loja(body: Dict[str, Any]) -> Tuple[str, str, int, int, str, bool]:
	if any(body.get(k) is None for k in ("loja_id", "nome_loja", "mes", "ano", "grupo_meta_id")):
		raise MalformedRequest("Dados incompletos. Forneça loja_id, nome_loja, mes, ano e grupo_meta_id.")
	loja_id = required_text(body["loja_id"], "ID da loja é obrigatório.")
	nome_loja = required_text(body["nome_loja"], "Nome da loja é obrigatório.")
	mes = parse_int(body["mes"], "mes")
	if mes < 1 or mes > 12:
		raise MalformedRequest("Mês deve estar entre 1 e 12.")
	ano = parse_int(body["ano"], "ano")
	if ano < 2020 or ano > 2050:
		raise MalformedRequest("Ano deve estar entre 2020 e 2050.")
	grupo_meta_id = required_text(body["grupo_meta_id"], "ID do grupo de metas é obrigatório.")
	ativo = parse_bool(body.get("ativo", True), "ativo")
	return loja_id, nome_loja, mes, ano, grupo_meta_id, ativo


def _check_grupo_usable(cur: Any, grupo_meta_id: str) -> None:
	cur.execute("SELECT id, ativo FROM grupos_metas_produtos WHERE id = %s", (grupo_meta_id,))
	grupo = cur.fetchone()
	if grupo is None:
		raise EntityNotFound("Grupo de metas não encontrado.")
	if not grupo["ativo"]:
		raise MalformedRequest("Não é possível usar um grupo de metas inativo.")


@lojas_bp.post("")
@require_jwt
def create_meta_loja() -> Response:
	loja_id, nome_loja, mes, ano, grupo_meta_id, ativo = _parse_meta_loja(json_body())
	meta_id = _new_id("meta_loja")
	with db.transaction() as cur:
		_check_grupo_usable(cur, grupo_meta_id)
		cur.execute(
			"SELECT id FROM metas_lojas WHERE loja_id = %s AND mes = %s AND ano = %s",
			(loja_id, mes, ano),
		)
		if cur.fetchone():
			raise Conflict("Já existe uma meta para esta loja no período informado.")
		cur.execute(
			"""
			INSERT INTO metas_lojas (id, loja_id, nome_loja, mes, ano, grupo_meta_id, ativo)
			VALUES (%s, %s, %s, %s, %s, %s, %s)
			""",
			(meta_id, loja_id, nome_loja, mes, ano, grupo_meta_id, int(ativo)),
		)
	with db.cursor() as cur:
		data = _load_meta_loja(cur, meta_id)
	return ok("Meta de loja cadastrada com sucesso", status=201, data=data)


@lojas_bp.put("/<meta_id>")
@require_jwt
def update_meta_loja(meta_id: str) -> Response:
	loja_id, nome_loja, mes, ano, grupo_meta_id, ativo = _parse_meta_loja(json_body())
	with db.transaction() as cur:
		cur.execute("SELECT id FROM metas_lojas WHERE id = %s", (meta_id,))
		if cur.fetchone() is None:
			raise EntityNotFound("Meta de loja não encontrada.")
		_check_grupo_usable(cur, grupo_meta_id)
		cur.execute(
			"SELECT id FROM metas_lojas WHERE loja_id = %s AND mes = %s AND ano = %s AND id <> %s",
			(loja_id, mes, ano, meta_id),
		)
		if cur.fetchone():
			raise Conflict("Já existe uma meta para esta loja no período informado.")
		cur.execute(
			"""
			UPDATE metas_lojas
			SET loja_id = %s, nome_loja = %s, mes = %s, ano = %s, grupo_meta_id = %s, ativo = %s
			WHERE id = %s
			""",
			(loja_id, nome_loja, mes, ano, grupo_meta_id, int(ativo), meta_id),
		)
	with db.cursor() as cur:
		data = _load_meta_loja(cur, meta_id)
	return ok("Meta de loja atualizada com sucesso", data=data)


@lojas_bp.get("/<meta_id>")
@require_jwt
def get_meta_loja(meta_id: str) -> Response:
	with db.cursor() as cur:
		data = _load_meta_loja(cur, meta_id)
	if data is None:
		raise EntityNotFound("Meta de loja não encontrada.")
	return ok("Meta de loja encontrada", data=data)


@lojas_bp.patch("/<meta_id>/finalizar")
@require_jwt
def finalizar_meta_loja(meta_id: str) -> Response:
	return _set_ativo(meta_id, False)


@lojas_bp.patch("/<meta_id>/reativar")
@require_jwt
def reativar_meta_loja(meta_id: str) -> Response:
	return _set_ativo(meta_id, True)


@lojas_bp.delete("/<meta_id>")
@require_jwt
def delete_meta_loja(meta_id: str) -> Response:
	with db.transaction() as cur:
		cur.execute("DELETE FROM metas_lojas WHERE id = %s", (meta_id,))
		if cur.rowcount == 0:
			raise EntityNotFound("Meta de loja não encontrada.")
	return ok("Meta de loja excluída com sucesso", data={"id": meta_id})
