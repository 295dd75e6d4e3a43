from __future__ import annotations

from typing import Any, Dict, List

from flask import Response, request

from novotok_api.auth.passwords import hash_password
from novotok_api.database import db
from novotok_api.envelope import json_body, require_jwt
from novotok_api.errors import Conflict, EntityNotFound, MalformedRequest
from novotok_api.pagination import page_params, paginate
from novotok_api.responses import ApiBlueprint, ok
from novotok_api.validators import (
	only_digits,
	optional_text,
	parse_bool,
	parse_choice,
	parse_int,
	parse_password,
	require_fields,
	required_text,
	validate_email,
)


bp = ApiBlueprint("usuarios", __name__, url_prefix="/api/usuarios")

TIPOS_USUARIO = {"admin", "gestor", "operador"}
_COLUMNS = "id, nome, email, cpf, telefone, tipo_usuario, ativo, filial_id, created_at, updated_at"
_PERMISSOES = ("visualizar", "criar", "editar", "excluir")


def _public(row: Dict[str, Any]) -> Dict[str, Any]:
	row = dict(row)
	row.pop("senha", None)
	row["ativo"] = bool(row["ativo"])
	return row


def _parse_cpf(value: Any) -> str:
	cpf = only_digits(value)
	if len(cpf) != 11:
		raise MalformedRequest("CPF deve conter 11 dígitos.")
	return cpf


def _ensure_unique(cur: Any, email: str, cpf: str, exclude_id: int = 0) -> None:
	cur.execute("SELECT id FROM usuarios WHERE email = %s AND id <> %s", (email, exclude_id))
	if cur.fetchone():
		raise Conflict("Email já cadastrado.")
	cur.execute("SELECT id FROM usuarios WHERE cpf = %s AND id <> %s", (cpf, exclude_id))
	if cur.fetchone():
		raise Conflict("CPF já cadastrado.")


@bp.get("")
@require_jwt
def list_usuarios() -> Response:
	page, per_page = page_params(request.args)
	where: List[str] = []
	params: List[Any] = []

	nome = request.args.get("nome")
	email = request.args.get("email")
	tipo_usuario = request.args.get("tipo_usuario")
	ativo = request.args.get("ativo")
	if nome:
		where.append("nome LIKE %s")
		params.append(f"%{nome}%")
	if email:
		where.append("email LIKE %s")
		params.append(f"%{email}%")
	if tipo_usuario:
		where.append("tipo_usuario = %s")
		params.append(parse_choice(tipo_usuario, "tipo_usuario", TIPOS_USUARIO))
	if ativo is not None:
		where.append("ativo = %s")
		params.append(1 if parse_bool(ativo, "ativo") else 0)

	clause = (" WHERE " + " AND ".join(where)) if where else ""
	with db.cursor() as cur:
		rows, meta = paginate(
			cur,
			f"SELECT {_COLUMNS} FROM usuarios{clause} ORDER BY nome ASC",
			f"SELECT COUNT(*) AS total FROM usuarios{clause}",
			params,
			page,
			per_page,
		)
	message = "Usuários encontrados" if rows else "Nenhum usuário encontrado"
	return ok(message, usuarios=[_public(r) for r in rows], **meta)


@bp.post("")
@require_jwt
def create_usuario() -> Response:
	body = json_body()
	require_fields(
		body, "nome", "email", "senha", "cpf",
		message="Dados incompletos. Nome, email, senha e CPF são obrigatórios.",
	)
	nome = required_text(body["nome"], "Nome é obrigatório.")
	email = validate_email(body["email"])
	senha = parse_password(body["senha"])
	if len(senha) < 6:
		raise MalformedRequest("A senha deve ter pelo menos 6 caracteres.")
	cpf = _parse_cpf(body["cpf"])
	telefone = optional_text(body.get("telefone"))
	tipo_usuario = parse_choice(body.get("tipo_usuario", "operador"), "tipo_usuario", TIPOS_USUARIO)
	ativo = parse_bool(body.get("ativo", True), "ativo")
	filial_id = body.get("filial_id")

	with db.transaction() as cur:
		_ensure_unique(cur, email, cpf)
		if filial_id is not None:
			filial_id = parse_int(filial_id, "filial_id", minimum=1)
			cur.execute("SELECT id FROM filiais WHERE id = %s", (filial_id,))
			if cur.fetchone() is None:
				raise EntityNotFound("Filial não encontrada.")
		cur.execute(
			"""
			INSERT INTO usuarios (nome, email, senha, cpf, telefone, tipo_usuario, ativo, filial_id)
			VALUES (%s,%s,%s,%s,%s,%s,%s,%s)
			""",
			(nome, email, hash_password(senha), cpf, telefone, tipo_usuario, int(ativo), filial_id),
		)
		usuario_id = cur.lastrowid
		# New accounts start with a zeroed permission row for every menu.
		cur.execute("SELECT id FROM menus")
		menu_ids = [r["id"] for r in cur.fetchall()]
		for menu_id in menu_ids:
			cur.execute(
				"""
				INSERT INTO permissoes_usuarios (usuario_id, menu_id, visualizar, criar, editar, excluir)
				VALUES (%s, %s, 0, 0, 0, 0)
				""",
				(usuario_id, menu_id),
			)
	return ok("Usuário cadastrado com sucesso", status=201, usuario_id=usuario_id)


@bp.get("/<int:usuario_id>")
@require_jwt
def get_usuario(usuario_id: int) -> Response:
	with db.cursor() as cur:
		cur.execute(f"SELECT {_COLUMNS} FROM usuarios WHERE id = %s", (usuario_id,))
		row = cur.fetchone()
	if row is None:
		raise EntityNotFound("Usuário não encontrado.")
	return ok("Usuário encontrado", usuario=_public(row))


@bp.put("/<int:usuario_id>")
@require_jwt
def update_usuario(usuario_id: int) -> Response:
	body = json_body()
	require_fields(body, "nome", "email", "cpf", message="Dados incompletos. Nome, email e CPF são obrigatórios.")
	nome = required_text(body["nome"], "Nome é obrigatório.")
	email = validate_email(body["email"])
	cpf = _parse_cpf(body["cpf"])
	telefone = optional_text(body.get("telefone"))
	tipo_usuario = parse_choice(body.get("tipo_usuario", "operador"), "tipo_usuario", TIPOS_USUARIO)
	ativo = parse_bool(body.get("ativo", True), "ativo")
	senha = parse_password(body["senha"]) if body.get("senha") else None

	with db.transaction() as cur:
		cur.execute("SELECT id FROM usuarios WHERE id = %s", (usuario_id,))
		if cur.fetchone() is None:
			raise EntityNotFound("Usuário não encontrado.")
		_ensure_unique(cur, email, cpf, exclude_id=usuario_id)
		cur.execute(
			"""
			UPDATE usuarios SET nome=%s, email=%s, cpf=%s, telefone=%s, tipo_usuario=%s, ativo=%s,
				updated_at=CURRENT_TIMESTAMP
			WHERE id=%s
			""",
			(nome, email, cpf, telefone, tipo_usuario, int(ativo), usuario_id),
		)
		if senha:
			cur.execute(
				"UPDATE usuarios SET senha=%s WHERE id=%s",
				(hash_password(senha), usuario_id),
			)
	return ok("Usuário atualizado com sucesso", usuario_id=usuario_id)


@bp.put("/<int:usuario_id>/permissoes")
@require_jwt
def update_permissoes(usuario_id: int) -> Response:
	body = json_body()
	permissoes = body.get("permissoes")
	if not isinstance(permissoes, list):
		raise MalformedRequest("permissoes deve ser uma lista.")
	parsed = []
	for index, item in enumerate(permissoes, start=1):
		if not isinstance(item, dict) or item.get("menu_id") is None:
			raise MalformedRequest(f"Permissão {index} está incompleta. Forneça menu_id.")
		parsed.append(
			(parse_int(item["menu_id"], "menu_id", minimum=1),)
			+ tuple(int(parse_bool(item.get(p, False), p)) for p in _PERMISSOES)
		)

	with db.transaction() as cur:
		cur.execute("SELECT id FROM usuarios WHERE id = %s", (usuario_id,))
		if cur.fetchone() is None:
			raise EntityNotFound("Usuário não encontrado.")
		cur.execute("SELECT id FROM menus")
		menus = {row["id"] for row in cur.fetchall()}
		if any(item[0] not in menus for item in parsed):
			raise EntityNotFound("Menu não encontrado.")
		cur.execute("DELETE FROM permissoes_usuarios WHERE usuario_id = %s", (usuario_id,))
		for menu_id, visualizar, criar, editar, excluir in parsed:
			cur.execute(
				"""
				INSERT INTO permissoes_usuarios (usuario_id, menu_id, visualizar, criar, editar, excluir)
				VALUES (%s, %s, %s, %s, %s, %s)
				""",
				(usuario_id, menu_id, visualizar, criar, editar, excluir),
			)
	return ok("Permissões atualizadas com sucesso", usuario_id=usuario_id, total=len(parsed))


@bp.delete("/<int:usuario_id>")
@require_jwt
def delete_usuario(usuario_id: int) -> Response:
	with db.transaction() as cur:
		cur.execute("DELETE FROM permissoes_usuarios WHERE usuario_id = %s", (usuario_id,))
		cur.execute("DELETE FROM usuarios WHERE id = %s", (usuario_id,))
		if cur.rowcount == 0:
			raise EntityNotFound("Usuário não encontrado.")
	return ok("Usuário excluído com sucesso", deleted=True, usuario_id=usuario_id)
