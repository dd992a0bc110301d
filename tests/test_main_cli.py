from __future__ import annotations

import sys
from pathlib import Path
from unittest import mock

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import main
from main import _parse_args


def test_default_command_invokes_serve() -> None:
    args = _parse_args([])
    assert args.command == "serve"
    assert args.port == 8000


def test_default_command_accepts_options_without_subcommand() -> None:
    args = _parse_args(["--host", "0.0.0.0", "--port", "8080", "--log-level", "debug"])
    assert args.command == "serve"
    assert args.host == "0.0.0.0"
    assert args.port == 8080
    assert args.log_level == "debug"


def test_serve_runs_uvicorn_with_configured_app(tmp_path: Path) -> None:
    config_file = tmp_path / "settings.yaml"
    config_file.write_text("jwt_secret: cli-test-secret-0123456789abcdefghijkl\n", encoding="utf-8")

    with mock.patch("uvicorn.run") as run:
        main.main(["serve", "--config", str(config_file), "--port", "9000"])

    run.assert_called_once()
    app = run.call_args.args[0]
    assert app.state.settings.jwt_secret.startswith("cli-test-secret")
    assert run.call_args.kwargs["port"] == 9000
    assert run.call_args.kwargs["ssl_certfile"] is None


def test_serve_requires_certificate_and_key_together() -> None:
    with mock.patch("uvicorn.run") as run:
        with pytest.raises(SystemExit):
            main.main(["--ssl-certfile", "server.crt"])
    run.assert_not_called()


def test_invalid_configuration_exits(tmp_path: Path) -> None:
    with pytest.raises(SystemExit, match="Invalid configuration"):
        main.main(["--config", str(tmp_path / "missing.yaml")])
