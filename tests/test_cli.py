"""CLI tests — commands against a mocked API."""

import json

import httpx
import pytest
from click.testing import CliRunner

from ewaste.cli import main as cli


@pytest.fixture()
def api(monkeypatch):
    """Route the CLI's HTTP client to a recorder instead of a server."""
    calls: list[httpx.Request] = []
    responses: dict[str, httpx.Response] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return responses.get(request.url.path, httpx.Response(404, json={"message": "nope"}))

    def client():
        return httpx.AsyncClient(
            transport=httpx.MockTransport(handler), base_url="http://api.test"
        )

    monkeypatch.setattr(cli, "_client", client)
    return calls, responses


def test_fill(api):
    calls, responses = api
    responses["/api/v1/bins/fill-level"] = httpx.Response(
        200, json={"sensorId": "S1", "fillPercentage": 87.0}
    )

    result = CliRunner().invoke(cli.main, ["fill", "S1", "87"])

    assert result.exit_code == 0, result.output
    assert calls[0].method == "PATCH"
    assert json.loads(calls[0].content) == {"sensorId": "S1", "percentage": 87.0}
    assert '"fillPercentage": 87.0' in result.output


def test_notify_error_exits_non_zero(api):
    _, responses = api
    responses["/api/v1/notify-user"] = httpx.Response(
        400,
        json={
            "status": "error",
            "message": "Bin S1 has no registered user",
            "errorMessage": "Bin S1 has no registered user",
        },
    )

    result = CliRunner().invoke(cli.main, ["notify", "S1", "95"])

    assert result.exit_code == 1
    assert "no registered user" in result.output


def test_bins_lists_rows(api):
    calls, responses = api
    responses["/api/v1/bins/all"] = httpx.Response(
        200,
        json=[
            {"sensorId": "S1", "fillPercentage": 95.0, "isActive": True, "userId": "u-1"},
            {"sensorId": "S2", "fillPercentage": 10.0, "isActive": False, "userId": None},
        ],
    )

    result = CliRunner().invoke(cli.main, ["bins", "--token", "jwt-abc"])

    assert result.exit_code == 0, result.output
    assert calls[0].headers["Authorization"] == "Bearer jwt-abc"
    assert "Bins (2):" in result.output
    assert "S1" in result.output and "S2" in result.output


def test_bins_requires_token(api, monkeypatch):
    monkeypatch.delenv("EWASTE_TOKEN", raising=False)
    result = CliRunner().invoke(cli.main, ["bins"])
    assert result.exit_code != 0
