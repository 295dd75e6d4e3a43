from __future__ import annotations

import math
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from flask import current_app

from novotok_api.validators import parse_int


def page_params(args: Mapping[str, Any]) -> Tuple[int, int]:
	"""Read ``page``/``per_page`` from query args; ``per_page`` is capped at MAX_PER_PAGE."""
	page = parse_int(args.get("page", 1), "page", minimum=1)
	per_page = parse_int(
		args.get("per_page", current_app.config["DEFAULT_PER_PAGE"]),
		"per_page",
		minimum=1,
	)
	return page, min(per_page, current_app.config["MAX_PER_PAGE"])


def paginate(
	cur: Any,
	select_sql: str,
	count_sql: str,
	params: Sequence[Any],
	page: int,
	per_page: int,
) -> Tuple[List[Dict[str, Any]], Dict[str, Any]]:
	"""Run the count and the page query with the same filter params.

	``select_sql`` must end with its ORDER BY; LIMIT/OFFSET are appended here.
	"""
	cur.execute(count_sql, tuple(params))
	row = cur.fetchone() or {}
	total = int(row.get("total") or 0)

	cur.execute(select_sql + " LIMIT %s OFFSET %s", tuple(params) + (per_page, (page - 1) * per_page))
	rows = cur.fetchall()

	meta = {
		"current_page": page,
		"per_page": per_page,
		"total_results": total,
		"total_pages": math.ceil(total / per_page),
	}
	return rows, meta
