"""Operator commands, available as ``flask --app novotok_api <command>``."""
from __future__ import annotations

import click
from flask import Flask

from novotok_api.auth.passwords import hash_password
from novotok_api.database import db
from novotok_api.errors import Conflict, MalformedRequest
from novotok_api.routes.usuarios import TIPOS_USUARIO
from novotok_api.validators import only_digits, validate_email


def register_commands(app: Flask) -> None:
	@app.cli.command("init-db")
	def init_db() -> None:
		"""Create the tables for the configured backend."""
		db.init_schema()
		click.echo(f"schema applied ({db.backend.name})")

	@app.cli.command("create-user")
	@click.argument("email")
	@click.argument("nome")
	@click.argument("cpf")
	@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
	@click.option("--tipo", type=click.Choice(sorted(TIPOS_USUARIO)), default="admin", show_default=True)
	def create_user(email: str, nome: str, cpf: str, password: str, tipo: str) -> None:
		"""Seed an account. Admins get every permission on every menu."""
		try:
			validate_email(email)
		except MalformedRequest as exc:
			raise click.BadParameter(str(exc.description), param_hint="EMAIL")
		cpf = only_digits(cpf)
		if len(cpf) != 11:
			raise click.BadParameter("CPF deve conter 11 dígitos.", param_hint="CPF")
		granted = 1 if tipo == "admin" else 0

		try:
			with db.transaction() as cur:
				cur.execute(
					"INSERT INTO usuarios (nome, email, senha, cpf, tipo_usuario, ativo) VALUES (%s,%s,%s,%s,%s,1)",
					(nome, email, hash_password(password), cpf, tipo),
				)
				usuario_id = cur.lastrowid
				cur.execute("SELECT id FROM menus")
				for row in cur.fetchall():
					cur.execute(
						"""
						INSERT INTO permissoes_usuarios (usuario_id, menu_id, visualizar, criar, editar, excluir)
						VALUES (%s, %s, %s, %s, %s, %s)
						""",
						(usuario_id, row["id"], granted, granted, granted, granted),
					)
		except Conflict:
			raise click.ClickException("Email ou CPF já cadastrado.")
		click.echo(f"user {usuario_id} created ({email}, {tipo})")
