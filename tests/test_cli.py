import json

import httpx
import pytest
from click.testing import CliRunner

from conftest import Recorder, raw_path
from rabbit_stats import RabbitStats, cli


@pytest.fixture
def runner():
    return CliRunner()


def _install(monkeypatch, recorder: Recorder) -> None:
    transport = httpx.MockTransport(recorder)
    monkeypatch.setattr(
        cli, "RabbitStats", lambda *args, **kwargs: RabbitStats(*args, transport=transport, **kwargs)
    )


def test_queues_lists_all(monkeypatch, runner):
    recorder = Recorder(payload=[{"name": "orders", "messages": 3}])
    _install(monkeypatch, recorder)

    result = runner.invoke(cli.main, ["queues"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == [{"name": "orders", "messages": 3}]
    assert raw_path(recorder.last) == "/api/queues"


def test_queues_scoped_by_vhost(monkeypatch, runner):
    recorder = Recorder(payload=[])
    _install(monkeypatch, recorder)

    result = runner.invoke(cli.main, ["queues", "--vhost", "/"])

    assert result.exit_code == 0, result.output
    assert raw_path(recorder.last) == "/api/queues/%2F"


def test_url_and_credentials_options(monkeypatch, runner):
    recorder = Recorder(payload={"name": "ops", "tags": ["administrator"]})
    _install(monkeypatch, recorder)

    result = runner.invoke(
        cli.main, ["--url", "http://mq.example:15672", "--user", "ops", "--password", "pw", "whoami"]
    )

    assert result.exit_code == 0, result.output
    assert str(recorder.last.url) == "http://mq.example:15672/api/whoami"
    assert json.loads(result.output)["name"] == "ops"


def test_purge_queue_with_empty_reply(monkeypatch, runner):
    recorder = Recorder(status_code=204)
    _install(monkeypatch, recorder)

    result = runner.invoke(cli.main, ["purge-queue", "/", "orders"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == {"status": 204}
    assert recorder.last.method == "DELETE"
    assert raw_path(recorder.last) == "/api/queues/%2F/orders/contents"


def test_error_exits_nonzero(monkeypatch, runner):
    recorder = Recorder(status_code=404, payload={"error": "Object Not Found"})
    _install(monkeypatch, recorder)

    result = runner.invoke(cli.main, ["queue", "/", "missing"])

    assert result.exit_code == 1
    assert "failed: 404" in result.output
    assert "Object Not Found" in result.output


def test_setup_creates_vhost_user_and_permissions(monkeypatch, runner):
    recorder = Recorder()
    _install(monkeypatch, recorder)
    monkeypatch.setenv("RABBITMQ_SETUP_VHOST", "/prod")
    monkeypatch.setenv("RABBITMQ_PERMISSIONS_READ", "^app\\..*")

    result = runner.invoke(cli.main, ["setup", "--app-user", "svc", "--app-pass", "pw"])

    assert result.exit_code == 0, result.output
    calls = [(r.method, raw_path(r)) for r in recorder.requests]
    assert calls == [
        ("PUT", "/api/vhosts/%2Fprod"),
        ("PUT", "/api/users/svc"),
        ("PUT", "/api/permissions/%2Fprod/svc"),
    ]
    assert json.loads(recorder.requests[1].content) == {"password": "pw", "tags": ""}
    assert json.loads(recorder.requests[2].content) == {"configure": ".*", "write": ".*", "read": "^app\\..*"}
    assert json.loads(result.output) == {"vhost": "/prod", "user": "svc", "tags": ""}


def test_error_in_setup_stops_before_later_calls(monkeypatch, runner):
    recorder = Recorder(status_code=401, payload={"error": "not_authorised"})
    _install(monkeypatch, recorder)

    result = runner.invoke(cli.main, ["setup"])

    assert result.exit_code == 1
    assert len(recorder.requests) == 1
    assert "failed: 401" in result.output
