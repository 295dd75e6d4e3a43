from __future__ import annotations

import logging
import os
from typing import Any, Callable, Dict, Mapping, Optional

from flask import Flask, Response
from flask_cors import CORS
from werkzeug.exceptions import HTTPException, MethodNotAllowed, NotFound

from novotok_api.cli import register_commands
from novotok_api.config import Config, env_flag
from novotok_api.database import db
from novotok_api.errors import EntityNotFound
from novotok_api.responses import api_response, error_response
from novotok_api.routes import register_blueprints


log = logging.getLogger(__name__)

# Config class attributes are evaluated at import time; these are re-read so env always wins.
_ENV_KEYS: Dict[str, Callable[[str], Any]] = {
	"DATABASE_BACKEND": str,
	"MYSQL_USER": str,
	"MYSQL_PASSWORD": str,
	"MYSQL_HOST": str,
	"MYSQL_DB": str,
	"MYSQL_PORT": int,
	"MYSQL_CHARSET": str,
	"SQLITE_PATH": str,
	"JWT_SECRET_KEY": str,
	"JWT_ISSUER": str,
	"JWT_AUDIENCE": str,
	"JWT_LIFETIME_SECONDS": int,
	"CORS_ORIGINS": str,
	"EXPOSE_DB_ERRORS": env_flag,
	"LOG_LEVEL": str,
	"DEFAULT_PER_PAGE": int,
	"MAX_PER_PAGE": int,
}

CORS_HEADERS = ["Content-Type", "Authorization", "X-Requested-With"]
CORS_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def _apply_env(app: Flask) -> None:
	for name, convert in _ENV_KEYS.items():
		value = os.getenv(name)
		if value is not None:
			app.config[name] = convert(value)


def _cors_origins(value: Any) -> Any:
	if isinstance(value, str):
		origins = [o.strip() for o in value.split(",") if o.strip()]
		return "*" if origins in ([], ["*"]) else origins
	return value


def _configure_logging(app: Flask) -> None:
	level = str(app.config.get("LOG_LEVEL") or "INFO").upper()
	logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
	logging.getLogger("novotok_api").setLevel(level)


def create_app(overrides: Optional[Mapping[str, Any]] = None) -> Flask:
	app = Flask(__name__)
	app.config.from_object(Config)
	_apply_env(app)
	if overrides:
		app.config.update(overrides)

	if not app.config.get("JWT_SECRET_KEY"):
		raise RuntimeError("JWT_SECRET_KEY must be set")

	_configure_logging(app)
	app.json.sort_keys = False  # type: ignore[attr-defined]

	CORS(
		app,
		resources={r"/*": {"origins": _cors_origins(app.config.get("CORS_ORIGINS", "*"))}},
		allow_headers=CORS_HEADERS,
		methods=CORS_METHODS,
	)

	db.init_app(app)
	register_blueprints(app)
	register_commands(app)

	@app.get("/health")
	def health() -> Response:
		return api_response({"status": "ok"})

	@app.errorhandler(HTTPException)
	def _http_error(err: HTTPException):
		code = err.code or 500
		if isinstance(err, MethodNotAllowed):
			resp = error_response("Método não permitido.", code)
			if err.valid_methods:
				resp.headers["Allow"] = ", ".join(err.valid_methods)
			return resp
		if isinstance(err, NotFound) and not isinstance(err, EntityNotFound):
			return error_response("Recurso não encontrado.", code)
		extra = getattr(err, "extra", {})
		return error_response(str(err.description or err.name), code, **extra)

	@app.errorhandler(Exception)
	def _unhandled(err: Exception):
		log.exception("unhandled error")
		return error_response("Erro no servidor.", 500)

	log.debug("app created with %s backend", app.config.get("DATABASE_BACKEND"))
	return app


if __name__ == "__main__":
	port = int(os.getenv("PORT", 5000))
	create_app().run(host="0.0.0.0", port=port, debug=env_flag(os.getenv("FLASK_DEBUG", "false")))
