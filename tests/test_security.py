"""Unit tests for app.core.security: bcrypt hashing and JWT issue/verify."""

import unittest
from datetime import UTC, datetime, timedelta

import jwt

from app.core.security import (
    TokenConfigurationError,
    TokenExpiredError,
    TokenInvalidError,
    create_access_token,
    decode_access_token,
    hash_password,
    hash_refresh_token,
    new_refresh_token,
    parse_duration,
    refresh_token_lifetime,
    token_lifetime_seconds,
    verify_password,
)
from api_support import TEST_SECRET, make_settings

BASE64URL_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"


class TestPasswordHashing(unittest.TestCase):
    """hash_password/verify_password: salted bcrypt digests."""

    def test_verify_accepts_same_password(self) -> None:
        for password in ("test123", "correct horse battery staple", "pässwörd-ñ", "x"):
            with self.subTest(password=password):
                self.assertTrue(verify_password(password, hash_password(password, rounds=10)))

    def test_verify_rejects_other_password(self) -> None:
        digest = hash_password("test123", rounds=10)
        for other in ("test124", "Test123", "test123 ", "", "test12"):
            with self.subTest(other=other):
                self.assertFalse(verify_password(other, digest))

    def test_hash_is_salted(self) -> None:
        first = hash_password("same-password", rounds=10)
        second = hash_password("same-password", rounds=10)
        self.assertNotEqual(first, second)
        self.assertTrue(verify_password("same-password", first))
        self.assertTrue(verify_password("same-password", second))

    def test_digest_embeds_cost_and_is_not_plaintext(self) -> None:
        digest = hash_password("test123", rounds=11)
        self.assertTrue(digest.startswith("$2b$11$"))
        self.assertNotIn("test123", digest)

    def test_malformed_digest_returns_false(self) -> None:
        for digest in ("", "not-a-bcrypt-hash", "$2b$10$short"):
            with self.subTest(digest=digest):
                self.assertFalse(verify_password("test123", digest))


class TestParseDuration(unittest.TestCase):
    def test_units(self) -> None:
        self.assertEqual(parse_duration("7d"), timedelta(days=7))
        self.assertEqual(parse_duration("12h"), timedelta(hours=12))
        self.assertEqual(parse_duration("15m"), timedelta(minutes=15))
        self.assertEqual(parse_duration("45s"), timedelta(seconds=45))
        self.assertEqual(parse_duration("3600"), timedelta(hours=1))

    def test_invalid(self) -> None:
        for value in ("", "0", "7w", "-1d", "d"):
            with self.subTest(value=value):
                with self.assertRaises(ValueError):
                    parse_duration(value)

    def test_default_lifetime_is_seven_days(self) -> None:
        self.assertEqual(token_lifetime_seconds(make_settings()), 7 * 24 * 3600)


class TestAccessTokens(unittest.TestCase):
    """create_access_token/decode_access_token round trip, expiry and tamper detection."""

    def setUp(self) -> None:
        self.settings = make_settings(JWT_EXPIRES_IN="1h")

    def test_round_trip_carries_user_and_session(self) -> None:
        token = create_access_token("user-1", self.settings, session_id="session-9")
        payload = decode_access_token(token, self.settings)
        self.assertEqual(payload.user_id, "user-1")
        self.assertEqual(payload.session_id, "session-9")
        self.assertEqual(payload.expires_at - payload.issued_at, timedelta(hours=1))

    def test_session_claim_is_optional(self) -> None:
        token = create_access_token(42, self.settings)
        payload = decode_access_token(token, self.settings)
        self.assertEqual(payload.user_id, "42")
        self.assertIsNone(payload.session_id)

    def test_valid_until_lifetime_then_expired(self) -> None:
        issued = datetime.now(UTC).replace(microsecond=0) - timedelta(minutes=30)
        token = create_access_token("user-1", self.settings, now=issued)

        payload = decode_access_token(
            token, self.settings, now=issued + timedelta(minutes=59, seconds=59)
        )
        self.assertEqual(payload.user_id, "user-1")

        with self.assertRaises(TokenExpiredError):
            decode_access_token(token, self.settings, now=issued + timedelta(hours=1))
        with self.assertRaises(TokenExpiredError):
            decode_access_token(token, self.settings, now=issued + timedelta(hours=2))

    def test_expired_against_wall_clock(self) -> None:
        issued = datetime.now(UTC) - timedelta(hours=2)
        token = create_access_token("user-1", self.settings, now=issued)
        with self.assertRaises(TokenExpiredError):
            decode_access_token(token, self.settings)

    def test_single_bit_mutation_is_rejected(self) -> None:
        token = create_access_token("user-1", self.settings, session_id="session-9")
        for i in range(len(token)):
            if token[i] == ".":
                continue
            tampered = token[:i] + chr(ord(token[i]) ^ 0x01) + token[i + 1 :]
            with self.subTest(position=i):
                with self.assertRaises(TokenInvalidError):
                    decode_access_token(tampered, self.settings)

    def test_spare_signature_bits_are_rejected(self) -> None:
        token = create_access_token("user-1", self.settings)
        head, last = token[:-1], token[-1]
        # HS256 signatures leave two unused bits in the final base64url character.
        flipped = BASE64URL_ALPHABET[BASE64URL_ALPHABET.index(last) ^ 0b01]
        with self.assertRaises(TokenInvalidError):
            decode_access_token(head + flipped, self.settings)

    def test_other_secret_is_rejected(self) -> None:
        token = create_access_token("user-1", make_settings(JWT_SECRET="some-other-secret-value"))
        with self.assertRaises(TokenInvalidError):
            decode_access_token(token, self.settings)

    def test_garbage_is_rejected(self) -> None:
        for token in ("", "abc", "a.b.c", "Bearer x.y.z"):
            with self.subTest(token=token):
                with self.assertRaises(TokenInvalidError):
                    decode_access_token(token, self.settings)

    def test_unsigned_token_is_rejected(self) -> None:
        now = datetime.now(UTC)
        token = jwt.encode(
            {"sub": "user-1", "iat": now, "exp": now + timedelta(hours=1)},
            key=None,
            algorithm="none",
        )
        with self.assertRaises(TokenInvalidError):
            decode_access_token(token, self.settings)

    def test_missing_subject_is_rejected(self) -> None:
        now = datetime.now(UTC)
        token = jwt.encode({"iat": now, "exp": now + timedelta(hours=1)}, TEST_SECRET, algorithm="HS256")
        with self.assertRaises(TokenInvalidError):
            decode_access_token(token, self.settings)


class TestSigningSecretGuard(unittest.TestCase):
    """Placeholder secrets are refused at issue and at verify time."""

    def test_issue_refuses_placeholder_secret(self) -> None:
        for secret in ("change-me-in-production", "your-fallback-secret", "secret"):
            with self.subTest(secret=secret):
                with self.assertRaises(TokenConfigurationError):
                    create_access_token("user-1", make_settings(JWT_SECRET=secret))

    def test_verify_refuses_placeholder_secret(self) -> None:
        token = create_access_token("user-1", make_settings())
        with self.assertRaises(TokenConfigurationError):
            decode_access_token(token, make_settings(JWT_SECRET="change-me-in-production"))


class TestRefreshTokenHelpers(unittest.TestCase):
    def test_tokens_are_random_and_only_digest_is_stable(self) -> None:
        first, second = new_refresh_token(), new_refresh_token()
        self.assertNotEqual(first, second)
        self.assertGreaterEqual(len(first), 64)
        self.assertEqual(hash_refresh_token(first), hash_refresh_token(first))
        self.assertNotEqual(hash_refresh_token(first), hash_refresh_token(second))
        self.assertEqual(len(hash_refresh_token(first)), 64)
        self.assertNotIn(first, hash_refresh_token(first))

    def test_lifetime_from_settings(self) -> None:
        self.assertEqual(refresh_token_lifetime(make_settings()), timedelta(days=30))
        self.assertEqual(
            refresh_token_lifetime(make_settings(REFRESH_TOKEN_EXPIRES_IN="12h")), timedelta(hours=12)
        )


if __name__ == "__main__":
    unittest.main()
