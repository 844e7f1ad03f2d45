"""Tests for the graph model: nodes, edges, tasks and structural validation."""

import pytest
from pydantic import ValidationError

from flowengine.errors import CycleError, GraphValidationError
from flowengine.graph.context import ExecutionContext
from flowengine.graph.edge import EdgeSpec, GraphSpec
from flowengine.graph.node import NodeSpec, NodeType, Task


class TestNodeType:
    def test_parse_canonical_names(self):
        assert NodeType.parse("apiCall") == NodeType.API_CALL
        assert NodeType.parse("conditionalFlow") == NodeType.CONDITIONAL_FLOW

    def test_parse_editor_aliases(self):
        assert NodeType.parse("conditionNode") == NodeType.CONDITION
        assert NodeType.parse("sendingMailNode") == NodeType.SEND_MAIL

    def test_parse_unknown_returns_none(self):
        assert NodeType.parse("teleportNode") is None


class TestNodeSpec:
    def test_starting_point_requires_condition_type(self):
        start = NodeSpec(id="a", type="condition", data={"isStartingPoint": True})
        not_condition = NodeSpec(id="b", type="text", data={"isStartingPoint": True})
        truthy_string = NodeSpec(id="c", type="condition", data={"isStartingPoint": "yes"})

        assert start.is_starting_point is True
        assert not_condition.is_starting_point is False
        assert truthy_string.is_starting_point is False

    def test_email_attributes_is_a_copy(self):
        node = NodeSpec(id="a", type="sendMail", data={"emailAttributes": {"subject": "Hi"}})
        attrs = node.email_attributes
        attrs["subject"] = "changed"
        assert node.data["emailAttributes"]["subject"] == "Hi"


class TestEdgeSpec:
    def test_execution_flag_at_top_level(self):
        edge = EdgeSpec.model_validate({"source": "a", "target": "b", "isExecutionLink": True})
        assert edge.is_execution_link is True
        assert edge.is_data_edge is False

    def test_execution_flag_nested_under_data(self):
        edge = EdgeSpec.model_validate(
            {"source": "a", "target": "b", "data": {"isExecutionLink": True}}
        )
        assert edge.is_execution_link is True

    def test_data_edge_needs_both_handles(self):
        full = EdgeSpec(source="a", target="b", sourceHandle="output", targetHandle="param-id")
        partial = EdgeSpec(source="a", target="b", sourceHandle="output")
        assert full.is_data_edge is True
        assert partial.is_data_edge is False

    def test_label_falls_back_to_endpoints(self):
        assert EdgeSpec(source="a", target="b").label == "a->b"


class TestTask:
    def test_camel_case_aliases(self):
        task = Task.model_validate(
            {"type": "invoice_email", "sourceId": "abc", "senderEmail": "a@x.com"}
        )
        assert task.source_id == "abc"
        assert task.sender_email == "a@x.com"

    def test_task_is_frozen(self):
        task = Task(type="invoice_email")
        with pytest.raises(ValidationError):
            task.type = "other"

    def test_to_payload_uses_aliases_and_drops_none(self):
        task = Task.model_validate({"type": "t", "sourceId": "abc"})
        assert task.to_payload() == {"type": "t", "sourceId": "abc", "attachments": []}


class TestGraphValidation:
    def _graph(self, nodes, edges):
        return GraphSpec.model_validate({"nodes": nodes, "edges": edges})

    def test_valid_graph_has_no_errors(self):
        graph = self._graph(
            [
                {"id": "start", "type": "condition", "data": {}},
                {"id": "api", "type": "apiCall", "data": {"path": "/x"}},
            ],
            [
                {"source": "start", "target": "api", "isExecutionLink": True},
                {
                    "source": "start",
                    "sourceHandle": "attr-email_id",
                    "target": "api",
                    "targetHandle": "param-id",
                },
            ],
        )
        assert graph.validate() == []

    def test_unexposed_source_port_is_reported(self):
        graph = self._graph(
            [
                {"id": "ocr", "type": "ocr", "data": {}},
                {"id": "log", "type": "consoleLog", "data": {}},
            ],
            [
                {
                    "id": "e1",
                    "source": "ocr",
                    "sourceHandle": "output-confidence",
                    "target": "log",
                    "targetHandle": "input-value",
                }
            ],
        )
        errors = graph.validate()
        assert len(errors) == 1
        assert "output-confidence" in errors[0]

    def test_malformed_target_port_is_reported(self):
        graph = self._graph(
            [
                {"id": "start", "type": "condition", "data": {}},
                {"id": "ocr", "type": "ocr", "data": {}},
            ],
            [
                {
                    "source": "start",
                    "sourceHandle": "attr-attachment-0",
                    "target": "ocr",
                    "targetHandle": "attr-attachment-first",
                }
            ],
        )
        errors = graph.validate()
        assert any("numeric index" in e for e in errors)

    def test_dangling_edge_is_not_an_error(self):
        graph = self._graph(
            [{"id": "start", "type": "condition", "data": {}}],
            [{"source": "start", "target": "ghost", "isExecutionLink": True}],
        )
        assert graph.validate() == []

    def test_duplicate_node_ids(self):
        graph = self._graph(
            [
                {"id": "a", "type": "text", "data": {}},
                {"id": "a", "type": "int", "data": {}},
            ],
            [],
        )
        assert graph.validate() == ["Duplicate node id: 'a'"]

    def test_execution_cycle_detected(self):
        graph = self._graph(
            [
                {"id": "a", "type": "text", "data": {}},
                {"id": "b", "type": "text", "data": {}},
                {"id": "c", "type": "text", "data": {}},
            ],
            [
                {"source": "a", "target": "b", "isExecutionLink": True},
                {"source": "b", "target": "c", "isExecutionLink": True},
                {"source": "c", "target": "a", "isExecutionLink": True},
            ],
        )
        assert graph.find_execution_cycle() == ["a", "b", "c", "a"]
        with pytest.raises(CycleError) as exc_info:
            graph.ensure_valid()
        assert "a -> b -> c -> a" in str(exc_info.value)

    def test_data_edges_do_not_form_execution_cycles(self):
        graph = self._graph(
            [
                {"id": "a", "type": "text", "data": {}},
                {"id": "b", "type": "consoleLog", "data": {}},
            ],
            [
                {"source": "a", "target": "b", "isExecutionLink": True},
                {"source": "b", "sourceHandle": "x", "target": "a", "targetHandle": "y"},
            ],
        )
        assert graph.find_execution_cycle() is None

    def test_ensure_valid_raises_graph_validation_error(self):
        graph = self._graph(
            [{"id": "a", "type": "text", "data": {}}, {"id": "a", "type": "text", "data": {}}],
            [],
        )
        with pytest.raises(GraphValidationError) as exc_info:
            graph.ensure_valid()
        assert exc_info.value.errors == ["Duplicate node id: 'a'"]

    def test_unknown_node_types(self):
        graph = self._graph(
            [{"id": "a", "type": "text", "data": {}}, {"id": "b", "type": "mystery", "data": {}}],
            [],
        )
        assert [n.id for n in graph.unknown_node_types()] == ["b"]

    def test_starting_candidates_match_return_text(self):
        flagged = {"isStartingPoint": True}
        graph = self._graph(
            [
                {"id": "s1", "type": "condition", "data": {**flagged, "returnText": "invoice"}},
                {"id": "s2", "type": "condition", "data": {**flagged, "returnText": "other"}},
                {"id": "s3", "type": "condition", "data": {"returnText": "invoice_email"}},
            ],
            [],
        )
        assert [n.id for n in graph.starting_candidates("invoice")] == ["s1"]


def test_context_snapshot_serializes_task():
    task = Task(type="invoice_email", source_id="abc")
    ctx = ExecutionContext(graph=GraphSpec(), task=task)
    ctx.set("task", task)
    ctx.set("attr-email_id", "abc")

    snapshot = ctx.snapshot()

    assert snapshot["task"] == {"type": "invoice_email", "sourceId": "abc", "attachments": []}
    assert snapshot["attr-email_id"] == "abc"
    assert "attr-email_id" in ctx
