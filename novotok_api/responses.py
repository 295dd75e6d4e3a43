from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Any, Dict, Optional

import dicttoxml
from flask import Blueprint, Response, current_app, jsonify, make_response, request
from werkzeug.exceptions import BadRequest


class ApiBlueprint(Blueprint):
	"""Blueprint that knows which success flag its clients expect.

	``flag="success"`` renders ``success: true/false``; ``flag="status"``
	renders ``status: 1/0`` (the goals screens were written against that).
	"""

	def __init__(self, *args: Any, flag: str = "success", **kwargs: Any) -> None:
		super().__init__(*args, **kwargs)
		if flag not in ("success", "status"):
			raise ValueError(f"unknown response flag {flag!r}")
		self.flag = flag


def _flag_style() -> str:
	try:
		blueprints = current_app.blueprints
	except RuntimeError:
		return "success"
	bp = blueprints.get(request.blueprint or "")
	if bp is None:
		# Routing failures (405) carry no endpoint, match on the URL prefix instead.
		for candidate in blueprints.values():
			prefix = candidate.url_prefix
			if prefix and request.path.startswith(prefix):
				bp = candidate
				break
	return getattr(bp, "flag", "success")


def _flag(ok: bool) -> Dict[str, Any]:
	if _flag_style() == "status":
		return {"status": 1 if ok else 0}
	return {"success": ok}


def _get_format() -> str:
	fmt = (request.args.get("format") or "json").strip().lower()
	if fmt not in {"json", "xml"}:
		raise BadRequest("format deve ser 'json' ou 'xml'")
	return fmt


def _to_xml(payload: Any, root: str = "response") -> bytes:
	return dicttoxml.dicttoxml(payload, custom_root=root, attr_type=False)


def jsonable(value: Any) -> Any:
	if isinstance(value, dict):
		return {k: jsonable(v) for k, v in value.items()}
	if isinstance(value, (list, tuple)):
		return [jsonable(v) for v in value]
	if isinstance(value, (dt.date, dt.datetime)):
		return str(value)
	if isinstance(value, Decimal):
		return float(value)
	if isinstance(value, bytes):
		return value.decode("utf-8", errors="replace")
	return value


def api_response(payload: Any, status: int = 200, *, root: str = "response", fmt: Optional[str] = None) -> Response:
	fmt = fmt or _get_format()
	payload = jsonable(payload)
	if fmt == "xml":
		xml_bytes = _to_xml(payload, root=root)
		resp = make_response(xml_bytes, status)
		resp.headers["Content-Type"] = "application/xml; charset=utf-8"
		return resp
	return make_response(jsonify(payload), status)


def ok(message: str, status: int = 200, **data: Any) -> Response:
	payload: Dict[str, Any] = _flag(True)
	payload["message"] = message
	payload.update(data)
	return api_response(payload, status=status)


def error_response(message: str, status: int, **data: Any) -> Response:
	payload: Dict[str, Any] = _flag(False)
	payload["message"] = message
	payload.update(data)
	# An invalid ?format must not turn an error into a second error.
	fmt = (request.args.get("format") or "json").strip().lower()
	return api_response(payload, status=status, root="error", fmt="xml" if fmt == "xml" else "json")
