"""Unit tests for the plexwrap.runtime module."""

from __future__ import annotations

from http import HTTPStatus
from unittest import mock

import falcon.asgi
import falcon.testing
import pytest

from plexwrap import runtime

_RUNTIME_ENV = (
    "PLEXWRAP_DATABASE_URL",
    "PLEXWRAP_HOST",
    "PLEXWRAP_PORT",
    "PLEXWRAP_LOG_LEVEL",
    "PLEXWRAP_WORKERS",
    "PLEXWRAP_GENERATION_BACKEND",
    "PLEXWRAP_WRAPPED_BUILDER",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _RUNTIME_ENV:
        monkeypatch.delenv(name, raising=False)


class TestCreateApp:
    """Tests for the Granian app factory."""

    def test_health_only_without_database(self) -> None:
        """Without a database URL only the probes are mounted."""
        app = runtime.create_app()
        client = falcon.testing.TestClient(app)

        assert isinstance(app, falcon.asgi.App)
        assert client.simulate_get("/health").status_code == HTTPStatus.OK
        assert (
            client.simulate_post("/wrapped/sub-1/2024/generate").status_code
            == HTTPStatus.NOT_FOUND
        )

    def test_full_app_with_database(
        self, monkeypatch: pytest.MonkeyPatch, database_url: str
    ) -> None:
        """A database URL mounts the Wrapped routes behind the gateway."""
        monkeypatch.setenv("PLEXWRAP_DATABASE_URL", database_url)
        client = falcon.testing.TestClient(runtime.create_app())

        result = client.simulate_post("/wrapped/sub-1/2024/generate")

        assert result.status_code == HTTPStatus.UNAUTHORIZED


class TestParsePort:
    """Tests for PLEXWRAP_PORT validation."""

    @pytest.mark.parametrize(
        ("raw", "port"), [("1", 1), ("8080", 8080), ("65535", 65535)]
    )
    def test_valid(self, raw: str, port: int) -> None:
        """Ports inside the range are accepted."""
        assert runtime._parse_port(raw) == port

    @pytest.mark.parametrize("raw", ["0", "65536", "http", ""])
    def test_invalid_exits(self, raw: str) -> None:
        """Invalid ports exit with status 1."""
        with pytest.raises(SystemExit) as excinfo:
            runtime._parse_port(raw)
        assert excinfo.value.code == 1


class TestRuntimeSettings:
    """Tests for reading server settings."""

    def test_defaults(self) -> None:
        """Unset variables fall back to the container defaults."""
        settings = runtime.RuntimeSettings.from_env()

        assert settings == runtime.RuntimeSettings()
        assert settings.port == 8080
        assert settings.workers == 1

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Every setting can be overridden."""
        monkeypatch.setenv("PLEXWRAP_HOST", "127.0.0.1")
        monkeypatch.setenv("PLEXWRAP_PORT", "9000")
        monkeypatch.setenv("PLEXWRAP_WORKERS", "4")
        monkeypatch.setenv("PLEXWRAP_LOG_LEVEL", "debug")

        settings = runtime.RuntimeSettings.from_env()

        assert settings == runtime.RuntimeSettings(
            host="127.0.0.1", port=9000, workers=4, log_level="debug"
        )

    @pytest.mark.parametrize("raw", ["0", "-2", "many"])
    def test_invalid_workers_exit(
        self, monkeypatch: pytest.MonkeyPatch, raw: str
    ) -> None:
        """Worker counts below one exit with status 1."""
        monkeypatch.setenv("PLEXWRAP_WORKERS", raw)

        with pytest.raises(SystemExit) as excinfo:
            runtime.RuntimeSettings.from_env()
        assert excinfo.value.code == 1


class TestMain:
    """Tests for the Granian entrypoint."""

    def test_serves_factory(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """main() starts Granian with the runtime factory."""
        monkeypatch.setenv("PLEXWRAP_PORT", "9090")
        monkeypatch.setenv("PLEXWRAP_LOG_LEVEL", "debug")

        with (
            mock.patch("granian.Granian") as granian_cls,
            mock.patch.object(
                runtime, "configure_logging", return_value=("DEBUG", False)
            ),
        ):
            runtime.main()

        args, kwargs = granian_cls.call_args
        assert args == ("plexwrap.runtime:create_app",)
        assert kwargs["port"] == 9090
        assert kwargs["address"] == "0.0.0.0"  # noqa: S104
        assert kwargs["factory"] is True
        assert kwargs["workers"] == 1
        granian_cls.return_value.serve.assert_called_once_with()
