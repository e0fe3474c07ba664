"""Tests for the tracer module."""

import json

import networkx as nx
import numpy as np
import pytest


@pytest.fixture
def enabled_tracer():
    from strokeneat.tracer import configure_tracer, get_tracer

    configure_tracer(enabled=True, level="INFO")
    yield get_tracer()
    configure_tracer(enabled=False)


class TestSummarize:
    """Tests for object summarization."""

    def test_numpy_array_summary(self):
        """Test that numpy arrays are summarized with shape and type."""
        from strokeneat.tracer import summarize

        arr = np.zeros((40, 3), dtype=np.float64)
        summary = summarize(arr)

        assert "ndarray" in summary
        assert "40x3" in summary
        assert "float64" in summary

    def test_equal_arrays_same_hash(self):
        """Test that equal control point arrays summarize the same."""
        from strokeneat.tracer import summarize

        assert summarize(np.ones((4, 3))) == summarize(np.ones((4, 3)))
        assert summarize(np.ones((4, 3))) != summarize(np.zeros((4, 3)))

    def test_summary_capped_length(self):
        """Test that summary never exceeds max length."""
        from strokeneat.tracer import summarize

        large_dict = {f"key_{i}": f"value_{i}" for i in range(100)}
        summary = summarize(large_dict, max_len=20)

        assert len(summary) <= 20

    def test_list_summary(self):
        """Test list summarization."""
        from strokeneat.tracer import summarize

        summary = summarize([1, 2, 3, 4, 5])

        assert "list" in summary
        assert "len=5" in summary

    def test_string_summary(self):
        """Test long string summarization."""
        from strokeneat.tracer import summarize

        summary = summarize("a" * 1000)

        assert "str" in summary
        assert "len=1000" in summary
        assert len(summary) <= 200

    def test_scalar_summary(self):
        """Test numbers and numpy scalars."""
        from strokeneat.tracer import summarize

        assert summarize(None) == "None"
        assert summarize(3) == "3"
        assert summarize(0.125) == "0.125"
        assert summarize(np.float64(0.5)) == "0.5"
        assert summarize(True) == "True"

    def test_pydantic_model_summary(self):
        """Test Pydantic model summarization."""
        from strokeneat.models import Sample
        from strokeneat.tracer import summarize

        sample = Sample(position=[0, 0, 0], pressure=1.0, time=0.0)

        assert "Sample" in summarize(sample)

    def test_curve_summary(self):
        """Test that curves describe themselves."""
        from strokeneat.curves.line import LineCurve
        from strokeneat.tracer import summarize

        summary = summarize(LineCurve([0, 0, 0], [2, 0, 0]))

        assert summary.startswith("LineCurve")
        assert "length=2" in summary

    def test_point_summary(self):
        """Test that 3D points print as coordinates."""
        from strokeneat.tracer import summarize

        assert summarize(np.array([0.5, 0.0, -1.25])) == "[0.5,0,-1.25]"

    def test_constraint_summary(self):
        """Test that constraints summarize to their kind and position."""
        from strokeneat.constraints.types import PositionConstraint
        from strokeneat.tracer import summarize

        assert summarize(PositionConstraint([1, 2, 3])) == "PositionConstraint(position=[1,2,3])"

    def test_curve_point_summary(self):
        """Test named tuples of numbers."""
        from strokeneat.curves.curve import Reparameterization
        from strokeneat.tracer import summarize

        assert summarize(Reparameterization(0.5, 2.0)) == "Reparameterization(t0=0.5,ratio=2)"

    def test_stroke_summary(self, arc_stroke):
        """Test that strokes describe themselves."""
        from strokeneat.tracer import summarize

        assert summarize(arc_stroke).startswith("InputStroke(samples=30,")

    def test_graph_summary(self):
        """Test networkx graph summarization."""
        from strokeneat.tracer import summarize

        graph = nx.MultiGraph()
        graph.add_edge(0, 1)
        graph.add_edge(0, 1)

        assert summarize(graph) == "MultiGraph(nodes=2,edges=2)"


class TestTracerSpan:
    """Tests for tracer span functionality."""

    def test_span_nesting(self, capsys, enabled_tracer):
        """Test that spans produce proper indentation."""
        with enabled_tracer.span("outer", module="test"):
            with enabled_tracer.span("inner", module="test"):
                enabled_tracer.event("inside")

        lines = capsys.readouterr().err.strip().split("\n")

        assert len(lines) == 5
        event_line = next(line for line in lines if "inside" in line)
        assert "    test:inner" in event_line

    def test_level_filtering(self, capsys, enabled_tracer):
        """Test that events below the configured level are dropped."""
        enabled_tracer.event("hidden detail", level="DEBUG")
        enabled_tracer.event("visible warning", level="WARN")

        err = capsys.readouterr().err

        assert "hidden detail" not in err
        assert "visible warning" in err

    def test_failed_span_logged(self, capsys, enabled_tracer):
        """Test that a failing span logs an error and re-raises."""
        with pytest.raises(RuntimeError):
            with enabled_tracer.span("solve", module="test"):
                raise RuntimeError("singular system")

        err = capsys.readouterr().err
        assert "ERROR" in err
        assert "RuntimeError" in err

    def test_event_meta(self, capsys, enabled_tracer):
        """Test that event metadata is summarized into the line."""
        enabled_tracer.event("fitted", segments=3)

        assert "fitted segments=3" in capsys.readouterr().err

    def test_json_lines(self, capsys):
        """Test JSON output alongside the text lines."""
        from strokeneat.tracer import configure_tracer, get_tracer

        configure_tracer(enabled=True, level="INFO", json_output=True)
        try:
            get_tracer().event("solved", energy=0.25)
        finally:
            configure_tracer(enabled=False)

        lines = capsys.readouterr().err.strip().split("\n")
        record = json.loads(lines[-1])
        assert record["message"] == "solved energy=0.25"
        assert record["meta"] == {"energy": "0.25"}

    def test_file_output(self, temp_dir):
        """Test that lines are mirrored to the trace file."""
        import os

        from strokeneat.tracer import configure_tracer, get_tracer

        path = os.path.join(temp_dir, "trace.log")
        configure_tracer(enabled=True, level="INFO", file_path=path)
        try:
            get_tracer().event("written to file")
        finally:
            get_tracer().config.close()
            configure_tracer(enabled=False)

        with open(path, encoding="utf-8") as f:
            assert "written to file" in f.read()

    def test_tracer_disabled_no_output(self, capsys):
        """Test that disabled tracer produces no output."""
        from strokeneat.tracer import configure_tracer, get_tracer

        configure_tracer(enabled=False)
        tracer = get_tracer()

        with tracer.span("test", module="test"):
            tracer.event("should not appear")

        captured = capsys.readouterr()
        assert captured.err == ""


class TestTraceDecorator:
    """Tests for the @trace decorator."""

    def test_decorator_runs_function(self):
        """Test that decorated function executes normally."""
        from strokeneat.tracer import configure_tracer, trace

        configure_tracer(enabled=False)

        @trace(label="test_func")
        def my_func(x):
            return x * 2

        assert my_func(5) == 10

    def test_decorator_logs_label(self, capsys, enabled_tracer):
        """Test that an enabled decorator opens a span under its label."""
        from strokeneat.tracer import trace

        @trace(label="fit_stroke", arg_names=["count"])
        def fit_stroke(count=0):
            return count

        assert fit_stroke(count=4) == 4
        err = capsys.readouterr().err
        assert "fit_stroke  start count=4" in err
        assert "end ok" in err

    def test_decorator_with_exception(self):
        """Test that decorator handles exceptions properly."""
        from strokeneat.tracer import configure_tracer, trace

        configure_tracer(enabled=False)

        @trace(label="failing_func")
        def failing_func():
            raise ValueError("test error")

        with pytest.raises(ValueError):
            failing_func()
