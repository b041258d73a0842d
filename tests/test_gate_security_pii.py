"""Tests for the security/PII source gate."""

import importlib.util
from pathlib import Path

import pytest

SCRIPT = Path(__file__).parent.parent / "scripts" / "gate_security_pii.py"


@pytest.fixture(scope="module")
def gate():
    spec = importlib.util.spec_from_file_location("gate_security_pii", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def _check(gate, tmp_path, source):
    path = tmp_path / "sample.py"
    path.write_text(source, encoding="utf-8")
    return gate.check_file(path)


def test_print_rejected(gate, tmp_path):
    assert _check(gate, tmp_path, 'print("hi")\n')


def test_fingerprint_call_is_not_print(gate, tmp_path):
    assert _check(gate, tmp_path, "value = fingerprint(text)\n") == []


def test_interpolated_message_rejected(gate, tmp_path):
    assert _check(gate, tmp_path, 'logger.info(f"got {count}")\n')
    assert _check(gate, tmp_path, 'logger.info("got %s", count)\n')


def test_sensitive_keyword_needs_redaction(gate, tmp_path):
    errors = _check(gate, tmp_path, 'logger.info("sent", extra={"x": message.text})\n')

    assert any("'.text'" in e for e in errors)


def test_redacted_keyword_allowed(gate, tmp_path):
    source = 'logger.info("sent", extra={"extra_fields": safe_log_context(text_len=len(message.text))})\n'

    assert _check(gate, tmp_path, source) == []


def test_comments_ignored(gate, tmp_path):
    assert _check(gate, tmp_path, '# print("debug") logger.info(f"{prompt}")\n') == []


def test_source_tree_passes(gate):
    assert gate.main([]) == 0


def test_explicit_root_with_violation_fails(gate, tmp_path):
    (tmp_path / "bad.py").write_text('print("leak")\n', encoding="utf-8")

    assert gate.main([str(tmp_path)]) == 1


def test_missing_root_fails(gate, tmp_path):
    assert gate.main([str(tmp_path / "nope")]) == 1
