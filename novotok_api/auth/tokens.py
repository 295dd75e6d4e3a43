"""Session tokens.

``issue_token`` and ``validate_token`` are the authoritative pair. Every
failure mode of ``validate_token`` (bad signature, expired, malformed, wrong
issuer/audience) raises the same ``InvalidToken`` so callers cannot leak the
difference to clients.

``extract_user_id_unverified`` reads the payload WITHOUT checking signature
or expiry. Its result is attacker-controlled and only fit for log context;
it must never feed an authorization decision.
"""
from __future__ import annotations

import datetime as dt
import re
from typing import Any, Optional

import jwt


ALGORITHM = "HS256"
DEFAULT_LIFETIME = dt.timedelta(days=7)

_BEARER_RE = re.compile(r"^Bearer\s+(\S+)\s*$")


class InvalidToken(Exception):
	pass


def issue_token(
	user_id: Any,
	secret: str,
	*,
	issuer: str,
	audience: str,
	lifetime: dt.timedelta = DEFAULT_LIFETIME,
	now: Optional[dt.datetime] = None,
	claim: str = "user_id",
) -> str:
	"""Sign a token for ``user_id`` under ``data.<claim>``.

	Back-office tokens carry ``data.user_id``. Seller tokens carry
	``data.vendedor_id`` and so never validate as a back-office session.
	"""
	issued_at = now or dt.datetime.now(dt.timezone.utc)
	payload = {
		"iss": issuer,
		"aud": audience,
		"iat": int(issued_at.timestamp()),
		"exp": int((issued_at + lifetime).timestamp()),
		"data": {claim: user_id},
	}
	return jwt.encode(payload, secret, algorithm=ALGORITHM)


def validate_token(token: str, secret: str, *, issuer: str, audience: str) -> Any:
	try:
		payload = jwt.decode(
			token,
			secret,
			algorithms=[ALGORITHM],
			audience=audience,
			issuer=issuer,
			options={"require": ["exp", "iat"]},
		)
	except jwt.InvalidTokenError as exc:
		raise InvalidToken(str(exc)) from exc
	user_id = _user_id(payload)
	if user_id is None:
		raise InvalidToken("token carries no user_id")
	return user_id


def extract_user_id_unverified(token: str) -> Any:
	try:
		payload = jwt.decode(token, options={"verify_signature": False})
	except jwt.InvalidTokenError:
		return None
	return _user_id(payload)


def bearer_token(header: Optional[str]) -> Optional[str]:
	if not header:
		return None
	match = _BEARER_RE.match(header.strip())
	if match is None:
		return None
	return match.group(1)


def _user_id(payload: Any) -> Any:
	if not isinstance(payload, dict):
		return None
	data = payload.get("data")
	if not isinstance(data, dict):
		return None
	return data.get("user_id")
