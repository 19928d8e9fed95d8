from app.core.config import Settings


def test_settings_need_only_url_and_database(monkeypatch):
    """The anon key is not read by the backend and may be absent"""
    monkeypatch.delenv("SUPABASE_KEY", raising=False)
    monkeypatch.delenv("SUPABASE_SERVICE_ROLE_KEY", raising=False)
    monkeypatch.setenv("SUPABASE_URL", "http://localhost:54321")
    monkeypatch.setenv("DATABASE_URL", "sqlite://")

    settings = Settings(_env_file=None)

    assert settings.SUPABASE_SERVICE_ROLE_KEY is None
    assert settings.VARIANT_SEED_STOCK == 10
    assert settings.MAX_BEST_SELLING == 4


def test_unused_anon_key_is_ignored(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", "http://localhost:54321")
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.setenv("SUPABASE_KEY", "anon")

    settings = Settings(_env_file=None)

    assert not hasattr(settings, "SUPABASE_KEY")
