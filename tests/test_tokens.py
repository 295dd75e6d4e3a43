import datetime as dt
import unittest

from novotok_api.auth.tokens import (
	InvalidToken,
	bearer_token,
	extract_user_id_unverified,
	issue_token,
	validate_token,
)


ISSUER = "novotok-api"
AUDIENCE = "novotok-clients"


def _issue(user_id=7, secret="s3cret", **kwargs):
	return issue_token(user_id, secret, issuer=ISSUER, audience=AUDIENCE, **kwargs)


class TokenTests(unittest.TestCase):
	def test_round_trip(self):
		token = _issue()
		self.assertEqual(validate_token(token, "s3cret", issuer=ISSUER, audience=AUDIENCE), 7)

	def test_expired_token_rejected(self):
		past = dt.datetime.now(dt.timezone.utc) - dt.timedelta(days=8)
		token = _issue(now=past)
		with self.assertRaises(InvalidToken):
			validate_token(token, "s3cret", issuer=ISSUER, audience=AUDIENCE)

	def test_wrong_secret_rejected(self):
		with self.assertRaises(InvalidToken):
			validate_token(_issue(), "other", issuer=ISSUER, audience=AUDIENCE)

	def test_wrong_audience_rejected(self):
		with self.assertRaises(InvalidToken):
			validate_token(_issue(), "s3cret", issuer=ISSUER, audience="someone-else")

	def test_garbage_rejected(self):
		with self.assertRaises(InvalidToken):
			validate_token("not.a.jwt", "s3cret", issuer=ISSUER, audience=AUDIENCE)

	def test_seller_claim_is_not_a_user_id(self):
		token = _issue(user_id=3, claim="vendedor_id")
		with self.assertRaises(InvalidToken):
			validate_token(token, "s3cret", issuer=ISSUER, audience=AUDIENCE)

	def test_unverified_extraction_ignores_signature(self):
		token = _issue(user_id=42, secret="whatever")
		self.assertEqual(extract_user_id_unverified(token), 42)
		self.assertIsNone(extract_user_id_unverified("garbage"))

	def test_bearer_header_parsing(self):
		self.assertEqual(bearer_token("Bearer abc.def.ghi"), "abc.def.ghi")
		self.assertEqual(bearer_token("  Bearer   abc  "), "abc")
		self.assertIsNone(bearer_token("Basic abc"))
		self.assertIsNone(bearer_token("Bearer"))
		self.assertIsNone(bearer_token(None))


if __name__ == "__main__":
	unittest.main()
