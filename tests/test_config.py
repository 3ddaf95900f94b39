from utils.config import Settings


def test_sql_echo_is_off_without_environment(monkeypatch):
    monkeypatch.delenv("ENVIRONMENT", raising=False)

    settings = Settings.from_env()

    assert settings.environment == "production"
    assert settings.echo_sql is False
    assert Settings().echo_sql is False


def test_sql_echo_only_in_development(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "development")
    assert Settings.from_env().echo_sql is True


def test_encrypted_fields_read_from_environment(monkeypatch):
    monkeypatch.setenv("ENCRYPTED_FIELDS", "address, emergency_contact_name")

    settings = Settings.from_env()

    assert settings.encrypted_fields == ("address", "emergency_contact_name")
