"""Tests for application wiring and the startup/shutdown lifespan."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from tradeproxy import main
from tradeproxy.config import AppSettings, StorageSettings
from tradeproxy.exceptions import TransportError


@pytest.fixture
def wired(monkeypatch, tmp_path, mock_settings: AppSettings):
    """build_app with the exchange client and database replaced by mocks."""
    client = MagicMock()
    client.connect = AsyncMock()
    client.close = AsyncMock()
    database = MagicMock()
    database.connect = AsyncMock()
    database.close = AsyncMock()
    monkeypatch.setattr(main, "KucoinClient", MagicMock(return_value=client))
    monkeypatch.setattr(main, "ProxyDatabase", MagicMock(return_value=database))
    settings = mock_settings.model_copy(
        update={"storage": StorageSettings(db_path=str(tmp_path / "proxy.db"))}
    )
    return main.build_app(settings), client, database


def test_lifespan_connects_and_closes(wired) -> None:
    app, client, database = wired

    with TestClient(app) as http:
        assert http.get("/health").json() == {"status": "ok"}
        database.connect.assert_awaited_once()
        client.connect.assert_awaited_once()

    client.close.assert_awaited_once()
    database.close.assert_awaited_once()


def test_failed_exchange_connect_still_closes_resources(wired) -> None:
    app, client, database = wired
    client.connect.side_effect = TransportError("could not load markets")

    with pytest.raises(TransportError):
        with TestClient(app):
            pass

    client.close.assert_awaited_once()
    database.close.assert_awaited_once()
