"""Tests for the flowengine command-line interface."""

import json
import logging

import pytest

from flowengine.cli import build_parser, main

CREDENTIAL_ENV_VARS = (
    "UNIPILE_EMAIL_API_KEY",
    "UNIPILE_BASE_URL",
    "UNIPILE_EMAIL_ACCOUNT_ID",
    "GOOGLE_CLOUD_VISION_API_KEY",
    "ANTHROPIC_API_KEY",
)


@pytest.fixture(autouse=True)
def _restore_logging(tmp_path, monkeypatch):
    """``main`` reconfigures the root logger; put it back afterwards."""
    monkeypatch.chdir(tmp_path)
    for name in CREDENTIAL_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def _write(tmp_path, name: str, data) -> str:
    path = tmp_path / name
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


def _exit_code(argv: list[str]) -> int:
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return exc_info.value.code


def _text_flow(start_node, link) -> dict:
    return {
        "nodes": [start_node(), {"id": "t", "type": "text", "data": {"text": "hello"}}],
        "edges": [link("start", "t")],
    }


class TestRun:
    def test_prints_run_output(self, tmp_path, capsys, start_node, link):
        graph = _write(tmp_path, "flow.json", _text_flow(start_node, link))
        task = _write(tmp_path, "task.json", {"type": "invoice_email"})

        code = _exit_code(["run", "--graph", graph, "--task", task])

        assert code == 0
        assert json.loads(capsys.readouterr().out) == {"success": True, "result": ["hello"]}

    def test_failed_run_exits_non_zero(self, tmp_path, capsys, start_node, link):
        graph = _write(tmp_path, "flow.json", _text_flow(start_node, link))
        task = _write(tmp_path, "task.json", {"type": "refund_request"})

        code = _exit_code(["run", "--graph", graph, "--task", task])

        assert code == 1
        output = json.loads(capsys.readouterr().out)
        assert output["success"] is False
        assert "No starting node" in output["error"]

    def test_verbose_output_and_event_log(self, tmp_path, capsys, start_node, link):
        graph = _write(tmp_path, "flow.json", _text_flow(start_node, link))
        task = _write(tmp_path, "task.json", {"type": "invoice_email"})
        events = tmp_path / "events"

        code = _exit_code(
            ["run", "--graph", graph, "--task", task, "--event-log", str(events), "-v"]
        )

        assert code == 0
        output = json.loads(capsys.readouterr().out)
        assert output["path"] == ["start", "t"]
        assert output["context"]["task"]["type"] == "invoice_email"
        log_lines = (events / f"{output['runId']}.jsonl").read_text().splitlines()
        assert json.loads(log_lines[0])["type"] == "run_started"
        assert json.loads(log_lines[-1])["type"] == "run_completed"

    def test_unknown_backend_config_id(self, tmp_path, capsys, start_node, link):
        graph = _write(tmp_path, "flow.json", _text_flow(start_node, link))
        task = _write(tmp_path, "task.json", {"type": "invoice_email"})
        configs = _write(tmp_path, "configs.json", {"configs": [{"id": "crm"}]})

        code = _exit_code(
            ["run", "--graph", graph, "--task", task, "--configs", configs, "--config-id", "erp"]
        )

        assert code == 1
        assert json.loads(capsys.readouterr().out) == {
            "success": False,
            "error": "Backend config not found: erp",
        }

    def test_missing_and_malformed_input_files(self, tmp_path, capsys, start_node, link):
        graph = _write(tmp_path, "flow.json", _text_flow(start_node, link))
        broken = tmp_path / "task.json"
        broken.write_text("{not json", encoding="utf-8")

        assert _exit_code(["run", "--graph", graph, "--task", str(tmp_path / "nope.json")]) == 1
        assert "Could not read input" in json.loads(capsys.readouterr().out)["error"]

        assert _exit_code(["run", "--graph", graph, "--task", str(broken)]) == 1
        assert json.loads(capsys.readouterr().out)["success"] is False


class TestValidate:
    def test_valid_graph(self, tmp_path, capsys, start_node, link):
        graph = _write(tmp_path, "flow.json", _text_flow(start_node, link))

        assert _exit_code(["validate", "--graph", graph]) == 0
        assert "✓ Graph is valid (2 nodes, 1 edges)" in capsys.readouterr().out

    def test_cycle_and_unknown_type(self, tmp_path, capsys, link):
        flow = {
            "nodes": [
                {"id": "a", "type": "text", "data": {}},
                {"id": "b", "type": "hologram", "data": {}},
            ],
            "edges": [link("a", "b"), link("b", "a")],
        }
        graph = _write(tmp_path, "flow.json", flow)

        assert _exit_code(["validate", "--graph", graph]) == 1
        out = capsys.readouterr().out
        assert "⚠ Node b has unknown type 'hologram'" in out
        assert "✗ 1 problem(s) found:" in out
        assert "Execution cycle" in out

    def test_unparseable_graph(self, tmp_path, capsys):
        graph = _write(tmp_path, "flow.json", {"nodes": [{"type": "text"}]})

        assert _exit_code(["validate", "--graph", graph]) == 1
        assert "✗ Graph could not be parsed" in capsys.readouterr().out

    def test_missing_graph_file(self, tmp_path, capsys):
        assert _exit_code(["validate", "--graph", str(tmp_path / "nope.json")]) == 1
        assert "✗ Could not read" in capsys.readouterr().out

    def test_missing_capability_credentials(self, tmp_path, capsys, start_node, link):
        flow = {
            "nodes": [start_node(), {"id": "ocr", "type": "ocrNode", "data": {}}],
            "edges": [link("start", "ocr")],
        }
        graph = _write(tmp_path, "flow.json", flow)

        assert _exit_code(["validate", "--graph", graph]) == 0
        out = capsys.readouterr().out
        assert "ocr nodes require GOOGLE_CLOUD_VISION_API_KEY" in out
        assert "✓ Graph is valid" in out

        assert _exit_code(["validate", "--graph", graph, "--require-credentials"]) == 1
        assert "✓ Graph is valid" not in capsys.readouterr().out


def test_parser_requires_a_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_serve_options_parse():
    args = build_parser().parse_args(["serve", "--port", "0", "--host", "0.0.0.0"])
    assert args.port == 0
    assert args.host == "0.0.0.0"
