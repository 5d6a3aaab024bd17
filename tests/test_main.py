"""
Tests for the command line interface.
"""

import json

import pytest
from loguru import logger

from mathgrade.config.settings import get_settings
from mathgrade.main import build_queue, load_answer_key, main
from mathgrade.processing.store import JsonFileStore


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("MATHGRADE_DATABASE_URL", f"sqlite:///{tmp_path / 'queue.db'}")
    monkeypatch.setenv("MATHGRADE_DATA_DIR", str(tmp_path / "data"))
    for provider in ("OPENAI", "ANTHROPIC", "GROQ", "OPENROUTER", "GEMINI"):
        monkeypatch.delenv(f"MATHGRADE_{provider}_API_KEY", raising=False)
    get_settings.cache_clear()
    yield tmp_path
    get_settings.cache_clear()
    # main() installs its own sinks
    logger.remove()


def test_inline_answer_key_with_alternates():
    entries = load_answer_key(None, ["1=42", "2 = 1/2 | 0.5"])

    assert [(e.question_number, e.correct_answer, e.alternates) for e in entries] == [
        (1, "42", []),
        (2, "1/2", ["0.5"]),
    ]


def test_answer_key_file_and_inline_are_merged(tmp_path):
    path = tmp_path / "key.json"
    path.write_text(json.dumps([{"question_number": 1, "correct_answer": "7"}]))

    entries = load_answer_key(str(path), ["2=8"])

    assert [e.correct_answer for e in entries] == ["7", "8"]


@pytest.mark.parametrize("pair", ["x=4", "3=", "no separator"])
def test_invalid_inline_entry(pair):
    with pytest.raises(ValueError):
        load_answer_key(None, [pair])


def test_enqueue_registers_submission(cli_env):
    code = main(["enqueue", "sub-1", "--project", "proj-1", "--image", "scans/sub-1.png", "-a", "1=42"])

    assert code == 0
    settings = get_settings()
    assert build_queue(settings).stats().pending == 1
    payload = JsonFileStore(settings.data_dir).load("sub-1", "proj-1")
    assert payload.image_ref == "scans/sub-1.png"
    assert payload.answer_key[0].correct_answer == "42"


def test_enqueue_many_and_stats(cli_env):
    assert main(["enqueue", "a", "b", "c", "--project", "proj-1", "--priority", "2"]) == 0
    assert main(["stats"]) == 0
    assert main(["stats", "--project", "proj-1"]) == 0
    assert build_queue(get_settings()).stats().total == 3


def test_worker_without_providers_is_a_configuration_error(cli_env):
    assert main(["worker", "--once"]) == 2


def test_grade_missing_file(cli_env):
    assert main(["grade", "missing.png"]) == 1


def test_no_command_prints_help(cli_env):
    assert main([]) == 0
