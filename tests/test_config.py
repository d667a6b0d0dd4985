"""Unit tests for app.core.config.Settings validators."""

import unittest

from pydantic import ValidationError

from app.core.config import Settings


class TestDatabaseUrl(unittest.TestCase):
    def test_postgres_scheme_is_normalized(self) -> None:
        s = Settings(DATABASE_URL="  postgres://u:p@db:5432/mexy ")
        self.assertEqual(s.DATABASE_URL, "postgresql+psycopg2://u:p@db:5432/mexy")

    def test_postgres_driver_scheme_is_normalized(self) -> None:
        s = Settings(DATABASE_URL="postgres+psycopg2://u:p@db/mexy")
        self.assertEqual(s.DATABASE_URL, "postgresql+psycopg2://u:p@db/mexy")

    def test_bare_postgresql_scheme_pins_psycopg2(self) -> None:
        s = Settings(DATABASE_URL="postgresql://u:p@db/mexy")
        self.assertEqual(s.DATABASE_URL, "postgresql+psycopg2://u:p@db/mexy")

    def test_default_url_uses_psycopg2(self) -> None:
        self.assertTrue(Settings().DATABASE_URL.startswith("postgresql+psycopg2://"))

    def test_psycopg2_url_unchanged(self) -> None:
        s = Settings(DATABASE_URL="postgresql+psycopg2://u:p@db/mexy?sslmode=require")
        self.assertEqual(s.DATABASE_URL, "postgresql+psycopg2://u:p@db/mexy?sslmode=require")

    def test_rejects_other_databases(self) -> None:
        with self.assertRaises(ValidationError):
            Settings(DATABASE_URL="mysql://u:p@db/mexy")

    def test_rejects_blank(self) -> None:
        with self.assertRaises(ValidationError):
            Settings(DATABASE_URL="   ")


class TestLimits(unittest.TestCase):
    def test_defaults(self) -> None:
        s = Settings()
        self.assertEqual(s.API_PREFIX, "/api")
        self.assertEqual(s.DB_STATEMENT_TIMEOUT_MS, 25000)
        self.assertEqual(s.DB_CONNECT_RETRIES, 5)
        self.assertEqual(s.PASSWORD_HASH_ROUNDS, 12)
        self.assertTrue(s.USER_EMAIL_PRECHECK)

    def test_api_prefix(self) -> None:
        self.assertEqual(Settings(API_PREFIX="/api/").API_PREFIX, "/api")
        with self.assertRaises(ValidationError):
            Settings(API_PREFIX="api")

    def test_out_of_range(self) -> None:
        for field, value in (
            ("DB_STATEMENT_TIMEOUT_MS", -1),
            ("DB_STATEMENT_TIMEOUT_MS", 600001),
            ("DB_CONNECT_TIMEOUT_SEC", 0),
            ("DB_POOL_SIZE", 0),
            ("DB_MAX_OVERFLOW", -1),
            ("DB_POOL_TIMEOUT_SEC", 0),
            ("DB_CONNECT_RETRIES", 0),
            ("DB_CONNECT_RETRIES", 11),
            ("DB_CONNECT_RETRY_DELAY_SEC", 0),
            ("PASSWORD_HASH_ROUNDS", 3),
            ("PASSWORD_HASH_ROUNDS", 17),
        ):
            with self.subTest(field=field, value=value):
                with self.assertRaises(ValidationError):
                    Settings(**{field: value})

    def test_statement_timeout_can_be_disabled(self) -> None:
        self.assertEqual(Settings(DB_STATEMENT_TIMEOUT_MS=0).DB_STATEMENT_TIMEOUT_MS, 0)


if __name__ == "__main__":
    unittest.main()
