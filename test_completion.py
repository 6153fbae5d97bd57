"""Tests for the completion-check schedule and structured reply handling."""

import json

from agent.completion import (
    COMPLETION_SCHEMA,
    FINAL_SUMMARY_SCHEMA,
    completion_interval,
    process_response,
    should_request_completion,
)


def test_interval_tightens_with_rounds():
    assert completion_interval(1) > 100
    assert completion_interval(5) == 10
    assert completion_interval(12) == 5
    assert completion_interval(20) == 3
    assert completion_interval(30) == 2
    assert completion_interval(60) == 1


def test_no_checks_in_first_rounds():
    assert not should_request_completion(1, 100)
    assert not should_request_completion(2, 100)


def test_checkpoints_and_intervals():
    assert should_request_completion(5, 100)
    assert should_request_completion(10, 100)
    assert not should_request_completion(11, 100)
    assert should_request_completion(21, 100)
    assert not should_request_completion(22, 100)
    assert should_request_completion(45, 100)


def test_always_near_cap():
    assert should_request_completion(7, 10)
    assert should_request_completion(95, 100)


def test_schemas_are_json():
    assert json.loads(COMPLETION_SCHEMA)["required"] == ["taskComplete", "finalSummary"]
    assert json.loads(FINAL_SUMMARY_SCHEMA)["required"] == ["finalSummary"]


def test_process_complete_verdict():
    text, done = process_response('{"taskComplete": true, "finalSummary": "All tests pass."}')
    assert (text, done) == ("All tests pass.", True)


def test_process_incomplete_verdict():
    text, done = process_response('  {"taskComplete": false, "finalSummary": "Still working"}\n')
    assert (text, done) == ("Still working", False)


def test_process_truthy_string_is_not_complete():
    _, done = process_response('{"taskComplete": "yes", "finalSummary": "x"}')
    assert done is False


def test_process_plain_text():
    assert process_response("Done. I fixed the bug.") == ("Done. I fixed the bug.", False)


def test_process_broken_json():
    raw = '{"taskComplete": true, "finalSummary": '
    assert process_response(raw) == (raw, False)


def test_process_json_without_summary():
    raw = '{"taskComplete": true}'
    assert process_response(raw) == (raw, False)
