"""Password hashing.

New hashes come from werkzeug. Accounts migrated from the legacy PHP system
still carry bcrypt hashes (``$2y$``), which are verified with ``bcrypt``.
An unreadable hash counts as a mismatch.
"""
from __future__ import annotations

import logging
from typing import Optional

import bcrypt
from werkzeug.security import check_password_hash, generate_password_hash


log = logging.getLogger(__name__)

_BCRYPT_PREFIXES = ("$2y$", "$2a$", "$2b$")


def hash_password(password: str) -> str:
	return generate_password_hash(password)


def verify_password(stored: Optional[str], candidate: str) -> bool:
	if not stored:
		return False
	if stored.startswith(_BCRYPT_PREFIXES):
		# PHP's $2y$ is the same algorithm as $2b$.
		normalized = "$2b$" + stored[4:]
		try:
			return bcrypt.checkpw(candidate.encode("utf-8"), normalized.encode("utf-8"))
		except ValueError:
			log.warning("unreadable bcrypt hash")
			return False
	try:
		return check_password_hash(stored, candidate)
	except ValueError:
		log.warning("unrecognised password hash format")
		return False
