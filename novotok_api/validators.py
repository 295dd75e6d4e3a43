from __future__ import annotations

import datetime as dt
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Collection, Dict, Optional

from novotok_api.errors import MalformedRequest


_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_TRUE = {"1", "true", "yes", "on", "sim"}
_FALSE = {"0", "false", "no", "off", "nao", "não"}


def require_fields(body: Dict[str, Any], *fields: str, message: str) -> None:
	missing = [f for f in fields if body.get(f) is None]
	if missing:
		raise MalformedRequest(message)


def parse_int(
	value: Any,
	field: str,
	*,
	minimum: Optional[int] = None,
	maximum: Optional[int] = None,
) -> int:
	if isinstance(value, bool) or not isinstance(value, (int, float, str)):
		raise MalformedRequest(f"{field} deve ser um número inteiro.")
	# JSON 2.9 must not become 2.
	if isinstance(value, float) and not value.is_integer():
		raise MalformedRequest(f"{field} deve ser um número inteiro.")
	try:
		parsed = int(value)
	except (TypeError, ValueError):
		raise MalformedRequest(f"{field} deve ser um número inteiro.")
	if minimum is not None and parsed < minimum:
		raise MalformedRequest(f"{field} deve ser maior ou igual a {minimum}.")
	if maximum is not None and parsed > maximum:
		raise MalformedRequest(f"{field} deve ser menor ou igual a {maximum}.")
	return parsed


def parse_decimal(value: Any, field: str, *, minimum: Optional[Decimal] = None) -> Decimal:
	if isinstance(value, bool):
		raise MalformedRequest(f"{field} deve ser um número válido.")
	try:
		parsed = Decimal(str(value))
	except (InvalidOperation, ValueError):
		raise MalformedRequest(f"{field} deve ser um número válido.")
	if not parsed.is_finite():
		raise MalformedRequest(f"{field} deve ser um número válido.")
	if minimum is not None and parsed < minimum:
		raise MalformedRequest(f"{field} deve ser maior ou igual a {minimum}.")
	return parsed


def parse_date(value: Any, field: str) -> dt.date:
	if not value or not isinstance(value, str):
		raise MalformedRequest(f"{field} deve ser uma data no formato AAAA-MM-DD.")
	try:
		return dt.date.fromisoformat(value)
	except ValueError:
		raise MalformedRequest(f"{field} deve ser uma data no formato AAAA-MM-DD.")


def parse_bool(value: Any, field: str) -> bool:
	if isinstance(value, bool):
		return value
	if isinstance(value, int) and value in (0, 1):
		return bool(value)
	if isinstance(value, str):
		lowered = value.strip().lower()
		if lowered in _TRUE:
			return True
		if lowered in _FALSE:
			return False
	raise MalformedRequest(f"{field} deve ser verdadeiro ou falso.")


def parse_choice(value: Any, field: str, choices: Collection[str]) -> str:
	if not isinstance(value, str) or value not in choices:
		options = ", ".join(sorted(choices))
		raise MalformedRequest(f"{field} inválido. Valores aceitos: {options}.")
	return value


def validate_email(email: Any) -> str:
	if not isinstance(email, str) or not _EMAIL_RE.match(email):
		raise MalformedRequest("Email inválido.")
	return email


def _scalar_text(value: Any, message: str) -> str:
	# Numbers pass for code-like fields (codigo, rca, loja_id).
	if isinstance(value, bool) or not isinstance(value, (str, int, float)):
		raise MalformedRequest(message)
	return str(value).strip()


def required_text(value: Any, message: str) -> str:
	text = _scalar_text(value, message) if value is not None else ""
	if not text:
		raise MalformedRequest(message)
	return text


def optional_text(value: Any, field: str = "campo") -> Optional[str]:
	if value is None:
		return None
	return _scalar_text(value, f"{field} deve ser um texto.") or None


def parse_password(value: Any, field: str = "senha") -> str:
	if not isinstance(value, str):
		raise MalformedRequest(f"{field} deve ser um texto.")
	return value


def only_digits(value: Any) -> str:
	if value is None:
		return ""
	return re.sub(r"\D", "", _scalar_text(value, "Documento deve ser um texto."))


def parse_document(value: Any, field: str) -> str:
	"""CPF (11 digits) or CNPJ (14 digits), formatting stripped."""
	digits = only_digits(value)
	if len(digits) not in (11, 14):
		raise MalformedRequest(f"{field} deve conter 11 (CPF) ou 14 (CNPJ) dígitos.")
	return digits


def parse_cnpj(value: Any) -> str:
	digits = only_digits(value)
	if len(digits) != 14:
		raise MalformedRequest("CNPJ deve conter 14 dígitos.")
	return digits
