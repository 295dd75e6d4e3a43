"""Client-visible error taxonomy.

Every class is a werkzeug ``HTTPException`` so Flask routes them through the
single handler registered in ``create_app``. ``description`` becomes the
``message`` field of the JSON body; ``extra`` is merged into the body.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from werkzeug.exceptions import BadRequest, InternalServerError, NotFound, Unauthorized
from werkzeug.exceptions import Conflict as _Conflict


class _ApiErrorMixin:
	extra: Dict[str, Any]

	def __init__(self, message: Optional[str] = None, **extra: Any) -> None:
		super().__init__(description=message)  # type: ignore[call-arg]
		self.extra = extra


class MalformedRequest(_ApiErrorMixin, BadRequest):
	pass


class Unauthenticated(_ApiErrorMixin, Unauthorized):
	pass


class EntityNotFound(_ApiErrorMixin, NotFound):
	pass


class Conflict(_ApiErrorMixin, _Conflict):
	pass


class InternalError(_ApiErrorMixin, InternalServerError):
	pass
