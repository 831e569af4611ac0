from agent_studio.core.config import DEFAULT_WORKFLOW_NAME, Settings, get_settings


def test_settings_defaults(monkeypatch):
    for name in ("LOG_LEVEL", "CORS_ORIGINS", "WORKFLOW_DEFAULT_NAME", "WORKFLOW_API_ENABLED"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings.log_level == "INFO"
    assert settings.cors_origins == ["http://localhost:3000", "http://localhost:3001"]
    assert settings.workflow_default_name == DEFAULT_WORKFLOW_NAME
    assert settings.workflow_api_enabled is True


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("CORS_ORIGINS", "https://studio.example.com, ,http://localhost:5173")
    monkeypatch.setenv("WORKFLOW_API_ENABLED", "off")

    settings = get_settings()

    assert settings.log_level == "DEBUG"
    assert settings.cors_origins == ["https://studio.example.com", "http://localhost:5173"]
    assert settings.workflow_api_enabled is False
    assert get_settings() is settings
