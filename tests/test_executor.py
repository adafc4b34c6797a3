"""Tests for the execution engine: ordering, input resolution, fail-fast."""
import threading
import time

import pytest

from costner.engine.control import ExecutionContext
from costner.engine.errors import (
    CyclicGraphError,
    ExecutionCancelled,
    ExecutionError,
    InputResolutionError,
    NodeNotFoundError,
)
from costner.engine.executor import Executor
from costner.engine.graph import Connection, Graph
from costner.nodes.base import BaseNode, DataType, NodeOutput
from costner.nodes.conditional import ConditionalNode
from costner.nodes.env import EnvNode
from costner.nodes.request import RequestNode
from costner.nodes.transform import TransformNode

from conftest import EchoNode, FailingNode, NeedyNode, connect


class TestScenarios:
    def test_linear_pipeline(self):
        graph = Graph()
        env = EnvNode("n1")
        env.set_input_value("load_os", False)
        transform = TransformNode("n2")
        transform.set_input_value("operation", "to_string")
        graph.add_node(env)
        graph.add_node(transform)
        connect(graph, "c1", "n1", "variables", "n2", "input")

        results = Executor(graph).execute_graph()

        assert [r.node_id for r in results] == ["n1", "n2"]
        assert all(r.success for r in results)
        assert results[0].outputs == {"variables": {}}
        assert results[1].outputs["output"] == "{}"

    def test_missing_required_input_stops_run(self):
        graph = Graph()
        graph.add_node(RequestNode("r1"))

        with pytest.raises(ExecutionError) as exc:
            Executor(graph).execute_graph()

        err = exc.value
        assert err.node_id == "r1"
        assert len(err.results) == 1
        assert err.results[0].success is False
        assert "url" in err.results[0].error
        assert err.results[0].outputs is None
        assert isinstance(err.__cause__, InputResolutionError)
        assert err.__cause__.reason == "not_provided"

    def test_conditional_branch(self):
        graph = Graph()
        node = ConditionalNode("c1")
        for name, value in [("value", 5), ("condition", "gt"), ("compare_value", 3),
                            ("true_output", "yes"), ("false_output", "no")]:
            node.set_input_value(name, value)
        graph.add_node(node)

        results = Executor(graph).execute_graph()

        assert results[0].outputs == {"result": True, "output": "yes"}

    def test_targeted_run_without_upstream_output(self):
        graph = Graph()
        graph.add_node(EnvNode("u1"))
        transform = TransformNode("t1")
        transform.set_input_value("operation", "to_string")
        graph.add_node(transform)
        connect(graph, "c1", "u1", "variables", "t1", "input")

        with pytest.raises(ExecutionError) as exc:
            Executor(graph).execute_node("t1")

        cause = exc.value.__cause__
        assert isinstance(cause, InputResolutionError)
        assert cause.reason == "not_executed"
        assert cause.source == "u1"
        assert "not available from u1" in str(cause)
        assert exc.value.results[0].success is False


class TestExecuteGraph:
    def test_runs_in_topological_order(self, diamond_graph):
        results = Executor(diamond_graph).execute_graph()
        assert [r.node_id for r in results] == ["a", "b", "c", "d"]
        assert EchoNode.calls == ["a", "b", "c", "d"]

    def test_connection_value_overrides_default(self, chain_graph):
        chain_graph.get_node("a").set_input_value("value", "seed")
        results = Executor(chain_graph).execute_graph()
        assert results[-1].outputs["out"] == "seed"

    def test_defaults_used_when_unconnected(self):
        graph = Graph()
        graph.add_node(EchoNode("a"))
        results = Executor(graph).execute_graph()
        assert results[0].outputs == {"out": "default"}

    def test_fan_in_to_separate_ports(self, diamond_graph):
        diamond_graph.get_node("a").set_input_value("value", 7)
        results = Executor(diamond_graph).execute_graph()
        assert results[-1].outputs == {"out": 7, "extra": 7}

    def test_fail_fast_returns_prefix(self):
        graph = Graph()
        graph.add_node(EchoNode("a"))
        graph.add_node(FailingNode("b"))
        graph.add_node(EchoNode("c"))
        connect(graph, "e1", "a", "out", "b", "value")
        connect(graph, "e2", "b", "out", "c", "value")

        with pytest.raises(ExecutionError, match="execution stopped at node b: boom") as exc:
            Executor(graph).execute_graph()

        assert [r.node_id for r in exc.value.results] == ["a", "b"]
        assert exc.value.results[0].success
        assert exc.value.results[1].error == "boom"
        assert isinstance(exc.value.__cause__, RuntimeError)
        assert EchoNode.calls == ["a"]

    def test_failure_stops_independent_later_nodes(self):
        graph = Graph()
        graph.add_node(FailingNode("a"))
        graph.add_node(EchoNode("z"))
        with pytest.raises(ExecutionError):
            Executor(graph).execute_graph()
        assert EchoNode.calls == []

    def test_cycle_means_no_node_runs(self, chain_graph):
        chain_graph._connections.append(Connection("bad", "c", "out", "a", "extra"))
        with pytest.raises(CyclicGraphError):
            Executor(chain_graph).execute_graph()
        assert EchoNode.calls == []

    def test_outputs_published_to_ports(self, chain_graph):
        chain_graph.get_node("a").set_input_value("value", "x")
        Executor(chain_graph).execute_graph()
        assert chain_graph.get_node("c").get_output_value("out") == ("x", True)

    def test_cache_rebuilt_each_run(self, chain_graph):
        executor = Executor(chain_graph)
        executor.execute_graph()
        assert executor.get_node_result("c") == {"out": "default"}
        chain_graph.get_node("a").set_input_value("value", "second")
        executor.execute_graph()
        assert executor.get_node_result("c") == {"out": "second"}

    def test_result_metadata(self, chain_graph):
        results = Executor(chain_graph).execute_graph()
        for r in results:
            assert r.error is None
            assert r.duration >= 0
            assert r.timestamp.tzinfo is not None
        assert results[0].timestamp <= results[-1].timestamp

    def test_progress_callback_invoked(self, chain_graph):
        events = []
        Executor(chain_graph, progress_callback=events.append).execute_graph()
        assert [e["node_id"] for e in events] == ["a", "b", "c"]
        assert all(e["type"] == "node_complete" for e in events)

    def test_progress_callback_reports_failure(self):
        graph = Graph()
        graph.add_node(FailingNode("f"))
        events = []
        with pytest.raises(ExecutionError):
            Executor(graph, progress_callback=events.append).execute_graph()
        assert events[0]["type"] == "node_failed"


class TestInputResolution:
    def test_missing_output_on_required_port(self):
        graph = Graph()
        graph.add_node(EchoNode("a"))
        graph.add_node(NeedyNode("n"))
        # "extra" is only produced when the echo node receives an extra input
        connect(graph, "e1", "a", "extra", "n", "needed")

        with pytest.raises(ExecutionError) as exc:
            Executor(graph).execute_graph()

        cause = exc.value.__cause__
        assert cause.reason == "missing_output"
        assert str(cause) == "required output extra not found in a"

    def test_missing_output_on_optional_port_is_skipped(self):
        graph = Graph()
        graph.add_node(EchoNode("a"))
        graph.add_node(EchoNode("b"))
        connect(graph, "e1", "a", "extra", "b", "value")
        results = Executor(graph).execute_graph()
        assert results[1].outputs == {"out": "default"}

    def test_upstream_failure_reason(self):
        graph = Graph()
        graph.add_node(FailingNode("f"))
        graph.add_node(NeedyNode("n"))
        connect(graph, "e1", "f", "out", "n", "needed")
        executor = Executor(graph)

        with pytest.raises(ExecutionError):
            executor.execute_node("f")
        with pytest.raises(ExecutionError) as exc:
            executor.execute_node("n")

        cause = exc.value.__cause__
        assert cause.reason == "upstream_failed"
        assert "not available from f" in str(cause)

    def test_unconnected_required_input(self):
        graph = Graph()
        graph.add_node(NeedyNode("n"))
        with pytest.raises(ExecutionError) as exc:
            Executor(graph).execute_graph()
        assert str(exc.value.__cause__) == "required input needed not provided for node n"

    def test_required_input_satisfied_by_default(self):
        graph = Graph()
        node = NeedyNode("n")
        node.set_input_value("needed", 42)
        graph.add_node(node)
        assert Executor(graph).execute_graph()[0].outputs == {"out": 42}


class TestExecuteNode:
    def test_missing_node(self, chain_graph):
        with pytest.raises(NodeNotFoundError):
            Executor(chain_graph).execute_node("zzz")

    def test_does_not_run_dependencies(self, chain_graph):
        result = Executor(chain_graph).execute_node("c")
        assert result.success
        # Optional input from an unexecuted upstream falls back to the default
        assert result.outputs == {"out": "default"}
        assert EchoNode.calls == ["c"]

    def test_uses_cache_from_previous_runs(self, chain_graph):
        executor = Executor(chain_graph)
        chain_graph.get_node("a").set_input_value("value", "cached")
        executor.execute_node("a")
        result = executor.execute_node("b")
        assert result.outputs == {"out": "cached"}

    def test_returned_outputs_do_not_alias_cache(self, chain_graph):
        executor = Executor(chain_graph)
        results = executor.execute_graph()
        results[0].outputs["out"] = "tampered"

        assert executor.get_node_result("a") == {"out": "default"}
        assert executor.execute_node("b").outputs == {"out": "default"}

    def test_clear_results(self, chain_graph):
        executor = Executor(chain_graph)
        executor.execute_node("a")
        executor.clear_results()
        assert executor.get_node_result("a") is None


class TestExecuteWithDependencies:
    def test_runs_only_upstream_closure(self):
        graph = Graph()
        for nid in ("a", "b", "c", "other"):
            graph.add_node(EchoNode(nid))
        connect(graph, "e1", "a", "out", "b", "value")
        connect(graph, "e2", "b", "out", "c", "value")
        graph.get_node("a").set_input_value("value", "v")

        results = Executor(graph).execute_with_dependencies("b")

        assert [r.node_id for r in results] == ["a", "b"]
        assert results[-1].outputs == {"out": "v"}
        assert "other" not in EchoNode.calls

    def test_missing_node(self, chain_graph):
        with pytest.raises(NodeNotFoundError):
            Executor(chain_graph).execute_with_dependencies("zzz")


class TestCancellation:
    def test_cancelled_between_nodes(self, chain_graph):
        context = ExecutionContext()

        def on_event(event):
            if event["node_id"] == "a":
                context.cancel()

        executor = Executor(chain_graph, progress_callback=on_event)
        with pytest.raises(ExecutionCancelled) as exc:
            executor.execute_graph(context)

        assert [r.node_id for r in exc.value.results] == ["a"]
        assert exc.value.next_node == "b"
        assert EchoNode.calls == ["a"]

    def test_expired_deadline_runs_nothing(self, chain_graph):
        with pytest.raises(ExecutionCancelled) as exc:
            Executor(chain_graph).execute_graph(ExecutionContext(timeout=0))
        assert exc.value.results == []
        assert EchoNode.calls == []

    def test_cancelled_targeted_run(self, chain_graph):
        context = ExecutionContext()
        context.cancel()
        with pytest.raises(ExecutionCancelled):
            Executor(chain_graph).execute_node("a", context)


class SleepyNode(BaseNode):
    """Sleeps briefly and tracks how many instances run at once."""
    NODE_TYPE = "sleepy"
    lock = threading.Lock()
    active = 0
    peak = 0

    @classmethod
    def INPUT_TYPES(cls):
        return []

    @classmethod
    def RETURN_TYPES(cls):
        return [NodeOutput("out", DataType.ANY)]

    def execute(self, context, inputs):
        with SleepyNode.lock:
            SleepyNode.active += 1
            SleepyNode.peak = max(SleepyNode.peak, SleepyNode.active)
        time.sleep(0.02)
        with SleepyNode.lock:
            SleepyNode.active -= 1
        return {"out": self.id}


class TestConcurrency:
    def test_runs_are_serialized(self):
        SleepyNode.active = SleepyNode.peak = 0
        graph = Graph()
        graph.add_node(SleepyNode("s"))
        executor = Executor(graph)
        errors = []

        def worker(i):
            try:
                if i % 2:
                    executor.execute_graph()
                else:
                    executor.execute_node("s")
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert SleepyNode.peak == 1
        assert executor.get_node_result("s") == {"out": "s"}
