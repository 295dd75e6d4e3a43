from novotok_api.auth.passwords import hash_password, verify_password
from novotok_api.auth.tokens import (
	InvalidToken,
	bearer_token,
	extract_user_id_unverified,
	issue_token,
	validate_token,
)

__all__ = [
	"InvalidToken",
	"bearer_token",
	"extract_user_id_unverified",
	"hash_password",
	"issue_token",
	"validate_token",
	"verify_password",
]
