"""Settings validation: database URL, JWT options, bcrypt cost and production secret."""

import logging
import time
import unittest

from pydantic import ValidationError

from app.core.config import Settings, is_insecure_secret
from app.main import configure_logging
from api_support import TEST_SECRET, make_settings


def _settings(**values: object) -> Settings:
    return Settings(_env_file=None, **values)


class TestSettingsValidation(unittest.TestCase):
    def test_defaults(self) -> None:
        s = _settings(DATABASE_URL="sqlite://")
        self.assertEqual(s.API_PREFIX, "/api")
        self.assertEqual(s.JWT_EXPIRES_IN, "7d")
        self.assertEqual(s.JWT_ALGORITHM, "HS256")
        self.assertGreaterEqual(s.BCRYPT_ROUNDS, 10)
        self.assertEqual(s.REFRESH_TOKEN_EXPIRES_IN, "30d")
        self.assertFalse(s.TRUST_PROXY_HEADERS)

    def test_database_url_must_be_postgres_or_sqlite(self) -> None:
        with self.assertRaises(ValidationError):
            _settings(DATABASE_URL="mysql://root@localhost/db")
        with self.assertRaises(ValidationError):
            _settings(DATABASE_URL="   ")
        s = _settings(DATABASE_URL=" postgresql+psycopg2://u:p@db:5432/inmotech ")
        self.assertEqual(s.DATABASE_URL, "postgresql+psycopg2://u:p@db:5432/inmotech")

    def test_bcrypt_rounds_floor(self) -> None:
        with self.assertRaises(ValidationError):
            _settings(DATABASE_URL="sqlite://", BCRYPT_ROUNDS=4)

    def test_token_lifetime_format(self) -> None:
        for field in ("JWT_EXPIRES_IN", "REFRESH_TOKEN_EXPIRES_IN"):
            for value in ("soon", "0", "7w"):
                with self.subTest(field=field, value=value):
                    with self.assertRaises(ValidationError):
                        _settings(DATABASE_URL="sqlite://", **{field: value})

    def test_jwt_algorithm_must_be_hmac(self) -> None:
        with self.assertRaises(ValidationError):
            _settings(DATABASE_URL="sqlite://", JWT_ALGORITHM="RS256")
        self.assertEqual(_settings(DATABASE_URL="sqlite://", JWT_ALGORITHM="hs512").JWT_ALGORITHM, "HS512")

    def test_prod_refuses_placeholder_secret(self) -> None:
        with self.assertRaises(ValidationError):
            _settings(APP_ENV="prod", DATABASE_URL="sqlite://")
        with self.assertRaises(ValidationError):
            _settings(APP_ENV="prod", DATABASE_URL="sqlite://", JWT_SECRET="your-fallback-secret")
        s = _settings(APP_ENV="prod", DATABASE_URL="sqlite://", JWT_SECRET=TEST_SECRET)
        self.assertEqual(s.JWT_SECRET.get_secret_value(), TEST_SECRET)

    def test_api_prefix_is_normalized(self) -> None:
        self.assertEqual(_settings(DATABASE_URL="sqlite://", API_PREFIX="/api/").API_PREFIX, "/api")
        with self.assertRaises(ValidationError):
            _settings(DATABASE_URL="sqlite://", API_PREFIX="api")


class TestInsecureSecret(unittest.TestCase):
    def test_placeholders(self) -> None:
        for secret in (None, "", "  ", "change-me-in-production", "SECRET", "your-fallback-secret"):
            with self.subTest(secret=secret):
                self.assertTrue(is_insecure_secret(secret))
        self.assertFalse(is_insecure_secret(TEST_SECRET))


class TestConfigureLogging(unittest.TestCase):
    def test_timestamps_are_utc(self) -> None:
        self.addCleanup(setattr, logging.Formatter, "converter", logging.Formatter.converter)
        configure_logging(make_settings())
        self.assertIs(logging.Formatter.converter, time.gmtime)

        formatter = logging.Formatter("%(asctime)s", datefmt="%Y-%m-%dT%H:%M:%SZ")
        record = logging.makeLogRecord({"created": 0.0, "msecs": 0.0})
        self.assertEqual(formatter.formatTime(record, formatter.datefmt), "1970-01-01T00:00:00Z")


if __name__ == "__main__":
    unittest.main()
