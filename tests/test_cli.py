import json

import httpx
import pytest
from click.testing import CliRunner

from campaign_pipeline import cli
from campaign_pipeline.orchestrator import orchestrator as orchestrator_module


def _research_stream(request: httpx.Request) -> httpx.Response:
    body = (
        'data: {"type":"PROGRESS","message":"searching"}\n'
        'data: {"type":"STREAMING_URL","url":"https://watch/1"}\n'
        'data: {"type":"COMPLETE","ad_count":3}\n'
    )
    return httpx.Response(200, content=body.encode())


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("CAMPAIGN_PIPELINE_PIPELINE__FAKE_DELAY_SECONDS", "0")
    monkeypatch.chdir(tmp_path)
    return tmp_path


def _use_transport(monkeypatch, store=None):
    def build(config, fake_all=False):
        return orchestrator_module.build_orchestrator(
            config, fake_all=fake_all, store=store, transport=httpx.MockTransport(_research_stream)
        )

    monkeypatch.setattr(cli, "build_orchestrator", build)


def test_run_json_then_show_and_list(isolated, monkeypatch):
    _use_transport(monkeypatch)
    runner = CliRunner()

    result = runner.invoke(cli.main, ["run", "https://example.com", "--fake-all", "--json"])

    assert result.exit_code == 0, result.output
    snapshot = json.loads(result.output)
    assert {agent["status"] for agent in snapshot["agents"]} == {"done"}
    assert snapshot["results"]["research"] == {"ad_count": 3}
    run_id = snapshot["run_id"]
    assert (isolated / "config" / "campaign-pipeline" / "runs" / f"{run_id}.json").exists()
    assert (isolated / "config" / "campaign-pipeline" / "runs" / "logs" / f"{run_id}.log").exists()

    listed = runner.invoke(cli.main, ["list"])
    assert listed.exit_code == 0
    assert run_id in listed.output

    shown = runner.invoke(cli.main, ["show", run_id])
    assert shown.exit_code == 0
    assert "https://example.com" in shown.output
    assert "research" in shown.output


def test_live_run_prints_activity_and_run_id(isolated, monkeypatch):
    _use_transport(monkeypatch)

    result = CliRunner().invoke(cli.main, ["run", "https://example.com", "--fake-all"])

    assert result.exit_code == 0, result.output
    assert "Run id:" in result.output
    assert "searching" in result.output


def test_persistence_failure_exits_nonzero(isolated, monkeypatch):
    class BrokenStore:
        def save(self, run):
            raise OSError("read-only file system")

    _use_transport(monkeypatch, store=BrokenStore())

    result = CliRunner().invoke(cli.main, ["run", "https://example.com", "--fake-all", "--json"])

    assert result.exit_code == 1
    assert "read-only file system" in result.output


def test_show_unknown_run(isolated):
    result = CliRunner().invoke(cli.main, ["show", "does-not-exist"])

    assert result.exit_code == 1


def test_list_without_runs(isolated):
    result = CliRunner().invoke(cli.main, ["list"])

    assert result.exit_code == 0
    assert "No stored runs" in result.output
