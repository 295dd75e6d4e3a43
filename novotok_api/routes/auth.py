from __future__ import annotations

import datetime as dt
from typing import Any, Dict, List

from flask import Response, current_app

from novotok_api.auth.passwords import hash_password, verify_password
from novotok_api.auth.tokens import issue_token
from novotok_api.database import db
from novotok_api.envelope import current_user_id, json_body, require_jwt
from novotok_api.errors import EntityNotFound, MalformedRequest, Unauthenticated
from novotok_api.responses import ApiBlueprint, ok
from novotok_api.validators import optional_text, parse_password, required_text


bp = ApiBlueprint("auth", __name__, url_prefix="/auth")


def _menus_for(cur: Any, usuario_id: int) -> List[Dict[str, Any]]:
	cur.execute(
		"""
		SELECT p.menu_id, m.nome, m.descricao, m.icone, m.rota, m.ordem,
			p.visualizar, p.criar, p.editar, p.excluir
		FROM permissoes_usuarios p
		JOIN menus m ON p.menu_id = m.id
		WHERE p.usuario_id = %s AND m.ativo = 1 AND p.visualizar = 1
		ORDER BY m.ordem ASC
		""",
		(usuario_id,),
	)
	return [
		{
			"id": r["menu_id"],
			"nome": r["nome"],
			"descricao": r["descricao"],
			"icone": r["icone"],
			"rota": r["rota"],
			"ordem": r["ordem"],
			"permissoes": {
				"visualizar": bool(r["visualizar"]),
				"criar": bool(r["criar"]),
				"editar": bool(r["editar"]),
				"excluir": bool(r["excluir"]),
			},
		}
		for r in cur.fetchall()
	]


def _issue(subject_id: Any, claim: str = "user_id") -> str:
	config = current_app.config
	return issue_token(
		subject_id,
		config["JWT_SECRET_KEY"],
		issuer=config["JWT_ISSUER"],
		audience=config["JWT_AUDIENCE"],
		lifetime=dt.timedelta(seconds=config["JWT_LIFETIME_SECONDS"]),
		claim=claim,
	)


@bp.post("/login")
def login() -> Response:
	body = json_body()
	email = body.get("email")
	password = body.get("password")
	if email is None or password is None:
		raise MalformedRequest("Email e senha são obrigatórios.")
	if not isinstance(email, str) or not isinstance(password, str):
		raise MalformedRequest("Email e senha devem ser textos.")

	with db.cursor() as cur:
		cur.execute(
			"SELECT id, nome, email, tipo_usuario, ativo, senha, filial_id FROM usuarios WHERE email = %s",
			(email,),
		)
		row = cur.fetchone()
		if row is None:
			raise Unauthenticated("Email não encontrado.")
		if not row["ativo"]:
			raise Unauthenticated("Usuário inativo. Contate o administrador.")
		if not verify_password(row["senha"], password):
			raise Unauthenticated("Senha incorreta.")
		menus = _menus_for(cur, row["id"])

	token = _issue(row["id"])
	return ok(
		"Login bem-sucedido.",
		token=token,
		usuario={
			"id": row["id"],
			"nome": row["nome"],
			"email": row["email"],
			"tipo_usuario": row["tipo_usuario"],
			"filial_id": row["filial_id"],
		},
		menus=menus,
	)


@bp.get("/me")
@require_jwt
def minha_conta() -> Response:
	with db.cursor() as cur:
		cur.execute(
			"""
			SELECT id, nome, email, cpf, telefone, tipo_usuario, ativo, filial_id, created_at, updated_at
			FROM usuarios WHERE id = %s
			""",
			(current_user_id(),),
		)
		row = cur.fetchone()
	if row is None:
		raise EntityNotFound("Usuário não encontrado.")
	row["ativo"] = bool(row["ativo"])
	return ok("Dados da conta.", usuario=row)


@bp.put("/me")
@require_jwt
def atualizar_minha_conta() -> Response:
	body = json_body()
	nome = required_text(body.get("nome"), "Nome é obrigatório.")
	telefone = optional_text(body.get("telefone"))
	nova_senha = body.get("nova_senha")
	if nova_senha:
		nova_senha = parse_password(nova_senha, "nova_senha")
		if len(nova_senha) < 6:
			raise MalformedRequest("A nova senha deve ter pelo menos 6 caracteres.")
		senha_atual = parse_password(body.get("senha_atual") or "", "senha_atual")

	with db.transaction() as cur:
		cur.execute("SELECT id, senha FROM usuarios WHERE id = %s", (current_user_id(),))
		row = cur.fetchone()
		if row is None:
			raise EntityNotFound("Usuário não encontrado.")
		if nova_senha:
			if not verify_password(row["senha"], senha_atual):
				raise MalformedRequest("Senha atual incorreta.")
			cur.execute(
				"UPDATE usuarios SET nome=%s, telefone=%s, senha=%s, updated_at=CURRENT_TIMESTAMP WHERE id=%s",
				(nome, telefone, hash_password(nova_senha), row["id"]),
			)
		else:
			cur.execute(
				"UPDATE usuarios SET nome=%s, telefone=%s, updated_at=CURRENT_TIMESTAMP WHERE id=%s",
				(nome, telefone, row["id"]),
			)
	return ok("Conta atualizada com sucesso.", usuario={"id": row["id"], "nome": nome, "telefone": telefone})


# -------------------------
# Mobile seller login
# -------------------------
@bp.post("/login-vendedor")
def login_vendedor() -> Response:
	body = json_body()
	rca = body.get("rca")
	password = body.get("password")
	if rca is None or password is None:
		raise MalformedRequest("RCA e senha são obrigatórios.")
	rca = required_text(rca, "RCA e senha são obrigatórios.")
	password = parse_password(password, "password")

	with db.cursor() as cur:
		cur.execute(
			"SELECT id, rca, nome, senha, filial_id, ativo FROM vendedores WHERE rca = %s",
			(rca,),
		)
		row = cur.fetchone()
	if row is None:
		raise Unauthenticated("RCA não encontrado.")
	if not row["ativo"]:
		raise Unauthenticated("Vendedor inativo. Contate o administrador.")
	if not verify_password(row["senha"], password):
		raise Unauthenticated("Senha incorreta.")

	return ok(
		"Login bem-sucedido.",
		id=row["id"],
		nome=row["nome"],
		rca=row["rca"],
		filial_id=row["filial_id"],
		token=_issue(row["id"], claim="vendedor_id"),
	)
