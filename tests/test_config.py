from __future__ import annotations

from pathlib import Path

import pytest

from userapi.config import DEVELOPMENT_JWT_SECRET, Settings, load_settings

SECRET = "config-test-secret-0123456789abcdefghij"


def test_defaults_use_development_secret() -> None:
    settings = Settings()
    assert settings.jwt_secret == DEVELOPMENT_JWT_SECRET
    assert settings.uses_development_secret
    assert settings.jwt_issuer == "UserManagementAPI"
    assert settings.jwt_audience == "UserManagementAPIClients"
    assert settings.token_lifetime_minutes == 60


def test_yaml_file_then_environment_precedence(tmp_path: Path) -> None:
    config_file = tmp_path / "settings.yaml"
    config_file.write_text(
        "\n".join(
            [
                f"jwt_secret: {SECRET}",
                "token_lifetime_minutes: 15",
                "admin_role: Operator",
                "https_redirect: yes",
                "trusted_proxies: [10.0.0.1, 10.0.0.2]",
            ]
        ),
        encoding="utf-8",
    )

    settings = load_settings(
        str(config_file),
        environ={"USERAPI_ADMIN_ROLE": "Auditor", "USERAPI_HTTPS_REDIRECT": "false"},
    )

    assert settings.jwt_secret == SECRET
    assert settings.token_lifetime_minutes == 15
    assert settings.admin_role == "Auditor"
    assert settings.https_redirect is False
    assert settings.trusted_proxies == ("10.0.0.1", "10.0.0.2")
    assert not settings.uses_development_secret


def test_environment_selects_config_file(tmp_path: Path) -> None:
    config_file = tmp_path / "custom.yaml"
    config_file.write_text(f"jwt_secret: {SECRET}\n", encoding="utf-8")

    settings = load_settings(environ={"USERAPI_CONFIG": str(config_file)})
    assert settings.jwt_secret == SECRET


def test_missing_explicit_config_file_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_settings(str(tmp_path / "missing.yaml"), environ={})


def test_unknown_keys_are_rejected() -> None:
    with pytest.raises(ValueError, match="Unknown configuration keys"):
        Settings.from_dict({"jwt_secrett": SECRET})


def test_short_secret_is_rejected() -> None:
    with pytest.raises(ValueError, match="jwt_secret"):
        Settings(jwt_secret="too-short")


def test_invalid_boolean_is_rejected() -> None:
    with pytest.raises(ValueError, match="boolean"):
        Settings.from_dict({"https_redirect": "sometimes"})


def test_non_positive_lifetime_is_rejected() -> None:
    with pytest.raises(ValueError):
        load_settings(
            environ={
                "USERAPI_CONFIG": "",
                "USERAPI_TOKEN_LIFETIME_MINUTES": "0",
            }
        )
