from __future__ import annotations

import os
import unittest
from unittest.mock import patch

from pydantic import ValidationError

from fuelsymphony.settings import Settings, get_cors_origins

REQUIRED = {
    "SUPABASE_URL": "https://project.supabase.co/",
    "SUPABASE_ANON_KEY": "anon-key",
    "JWT_SECRET": "secret",
}


class SettingsTests(unittest.TestCase):
    def test_missing_required_values_fail_fast(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(ValidationError) as ctx:
                Settings(_env_file=None)

        missing = {error["loc"][0] for error in ctx.exception.errors()}
        self.assertEqual(missing, {"supabase_url", "supabase_anon_key", "jwt_secret"})

    def test_blank_values_are_rejected(self) -> None:
        with patch.dict(os.environ, {**REQUIRED, "SUPABASE_ANON_KEY": "   "}, clear=True):
            with self.assertRaises(ValidationError):
                Settings(_env_file=None)

    def test_values_are_read_from_environment(self) -> None:
        with patch.dict(os.environ, {**REQUIRED, "SUPABASE_ANON_KEY": '"quoted-key"'}, clear=True):
            settings = Settings(_env_file=None)

        self.assertEqual(settings.supabase_url, "https://project.supabase.co")
        self.assertEqual(settings.supabase_anon_key, "quoted-key")
        self.assertEqual(settings.backend, "rest")

    def test_url_must_be_http(self) -> None:
        with patch.dict(os.environ, {**REQUIRED, "SUPABASE_URL": "project.supabase.co"}, clear=True):
            with self.assertRaises(ValidationError):
                Settings(_env_file=None)

    def test_sql_backend_requires_database_url(self) -> None:
        with patch.dict(os.environ, {**REQUIRED, "BACKEND": "sql"}, clear=True):
            with self.assertRaises(ValidationError):
                Settings(_env_file=None)

        with patch.dict(os.environ, {**REQUIRED, "BACKEND": "sql", "DATABASE_URL": "sqlite://"}, clear=True):
            settings = Settings(_env_file=None)
        self.assertEqual(settings.backend, "sql")

    def test_cors_origins_are_split(self) -> None:
        with patch.dict(
            os.environ,
            {**REQUIRED, "CORS_ALLOW_ORIGINS": "https://a.example.com, ,https://b.example.com"},
            clear=True,
        ):
            settings = Settings(_env_file=None)

        self.assertEqual(get_cors_origins(settings), ["https://a.example.com", "https://b.example.com"])


if __name__ == "__main__":
    unittest.main()
