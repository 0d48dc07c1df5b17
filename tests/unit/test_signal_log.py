"""Unit tests for rebuilding the graph from a JSON-lines signal log."""

import json

import pytest

from intent_graph.ingestion.signal_log import SignalLogError, read_signal_log, replay_signal_log


@pytest.fixture
def signal_log(tmp_path, scenario_a_signals):
    path = tmp_path / "signals.jsonl"
    lines = [json.dumps(signal) for signal in scenario_a_signals]
    lines.insert(2, "")
    lines.append("{not json")
    lines.append(json.dumps(["a", "list"]))
    lines.append(json.dumps({"type": "bounce"}))
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@pytest.mark.unit
def test_read_signal_log_skips_blank_lines(signal_log, scenario_a_signals):
    records = list(read_signal_log(signal_log))

    assert len(records) == len(scenario_a_signals) + 3
    assert records[0] == (1, scenario_a_signals[0])
    assert records[2][0] == 4
    assert records[-3][1] is None
    assert records[-2][1] is None


@pytest.mark.unit
def test_replay_rebuilds_graph(signal_log, builder, engine, scenario_a_signals):
    stats = replay_signal_log(signal_log, builder)

    assert stats.applied == len(scenario_a_signals)
    assert stats.rejected == 3
    assert stats.total == len(scenario_a_signals) + 3
    assert builder.generation == len(scenario_a_signals)
    assert [row.intent for row in engine.get_failing_intents(2).results] == ["browse", "search"]


@pytest.mark.unit
def test_missing_log_raises(tmp_path, builder):
    with pytest.raises(SignalLogError):
        replay_signal_log(tmp_path / "missing.jsonl", builder)
    assert builder.generation == 0
