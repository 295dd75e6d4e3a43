"""Shared request envelope: preflight pass-through, bearer auth, JSON body."""
from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Callable, Dict

from flask import Response, current_app, g, request
from werkzeug.exceptions import BadRequest

from novotok_api.auth.tokens import InvalidToken, bearer_token, extract_user_id_unverified, validate_token
from novotok_api.errors import MalformedRequest, Unauthenticated


log = logging.getLogger(__name__)


def require_jwt(fn: Callable[..., Response]) -> Callable[..., Response]:
	@wraps(fn)
	def wrapper(*args: Any, **kwargs: Any) -> Response:
		# Preflight never reaches the token check.
		if request.method == "OPTIONS":
			return current_app.make_default_options_response()

		token = bearer_token(request.headers.get("Authorization"))
		if token is None:
			raise Unauthenticated("Token não fornecido.")
		config = current_app.config
		try:
			g.user_id = validate_token(
				token,
				config["JWT_SECRET_KEY"],
				issuer=config["JWT_ISSUER"],
				audience=config["JWT_AUDIENCE"],
			)
		except InvalidToken as exc:
			log.info(
				"rejected token on %s %s (claimed user %s): %s",
				request.method,
				request.path,
				extract_user_id_unverified(token),
				exc,
			)
			raise Unauthenticated("Token inválido.")
		return fn(*args, **kwargs)

	return wrapper


def current_user_id() -> Any:
	return g.user_id


def json_body() -> Dict[str, Any]:
	if not request.get_data(cache=True):
		return {}
	try:
		body = request.get_json(force=True)
	except BadRequest:
		raise MalformedRequest("JSON inválido.")
	if not isinstance(body, dict):
		raise MalformedRequest("O corpo da requisição deve ser um objeto JSON.")
	return body
