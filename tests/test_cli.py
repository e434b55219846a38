"""Tests for docupload CLI helpers."""
import logging
import os

import pytest

from docupload import cli
from docupload.cli import (
    CLIError,
    _build_config,
    _build_parser,
    _exit_code,
    _load_env_file,
    _parse_timeout,
    _setup_logging,
    run_cli,
)
from docupload.cli_progress import _human_size, describe_outcome
from docupload.models import ErrorKind, UploadOutcome


ENV_KEYS = ("DOCUPLOAD_ENDPOINT", "DOCUPLOAD_AUTHORIZATION", "DOCUPLOAD_TIMEOUT")


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    saved = {key: os.environ.pop(key) for key in ENV_KEYS if key in os.environ}
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    # _load_env_file writes os.environ directly
    for key in ENV_KEYS:
        os.environ.pop(key, None)
    os.environ.update(saved)
    logging.disable(logging.NOTSET)
    root.handlers[:] = handlers
    root.setLevel(level)


def test_load_env_file(tmp_path):
    env_path = tmp_path / "upload.env"
    env_path.write_text(
        "\n".join(
            [
                "# upload target",
                "DOCUPLOAD_ENDPOINT=https://api.example.com/upload",
                "DOCUPLOAD_AUTHORIZATION='Bearer abc'",
                "export DOCUPLOAD_TIMEOUT=15",
            ]
        ),
        encoding="utf-8",
    )

    _load_env_file(env_path)

    assert os.environ["DOCUPLOAD_ENDPOINT"] == "https://api.example.com/upload"
    assert os.environ["DOCUPLOAD_AUTHORIZATION"] == "Bearer abc"
    assert os.environ["DOCUPLOAD_TIMEOUT"] == "15"


def test_load_env_file_keeps_existing(tmp_path):
    os.environ["DOCUPLOAD_ENDPOINT"] = "http://keep.example/up"
    env_path = tmp_path / ".env"
    env_path.write_text("DOCUPLOAD_ENDPOINT=http://other.example/up\n", encoding="utf-8")

    _load_env_file(env_path)

    assert os.environ["DOCUPLOAD_ENDPOINT"] == "http://keep.example/up"


def test_load_env_file_skips_comments_and_junk(tmp_path):
    env_path = tmp_path / ".env"
    env_path.write_text(
        "#DOCUPLOAD_TIMEOUT=5\nnot a pair\n=orphan\nDOCUPLOAD_ENDPOINT=\"http://x.example/up\"\n",
        encoding="utf-8",
    )

    _load_env_file(env_path)

    assert "DOCUPLOAD_TIMEOUT" not in os.environ
    assert os.environ["DOCUPLOAD_ENDPOINT"] == "http://x.example/up"


def test_load_env_file_missing(tmp_path):
    with pytest.raises(CLIError, match="not found"):
        _load_env_file(tmp_path / "nope.env")


@pytest.mark.parametrize(
    "value,expected",
    [(None, 60.0), ("", 60.0), ("12.5", 12.5), ("0", None), ("off", None), ("None", None)],
)
def test_parse_timeout(value, expected):
    assert _parse_timeout(value) == expected


def test_parse_timeout_rejects_garbage():
    with pytest.raises(CLIError):
        _parse_timeout("soon")
    with pytest.raises(CLIError):
        _parse_timeout("-1")


def test_build_config_from_env():
    os.environ["DOCUPLOAD_ENDPOINT"] = "https://api.example.com/upload"
    os.environ["DOCUPLOAD_AUTHORIZATION"] = "Bearer env"
    os.environ["DOCUPLOAD_TIMEOUT"] = "5"

    config = _build_config(None, None, None)

    assert config.endpoint == "https://api.example.com/upload"
    assert config.authorization == "Bearer env"
    assert config.timeout == 5.0


def test_build_config_flags_win():
    os.environ["DOCUPLOAD_ENDPOINT"] = "https://env.example.com/upload"
    config = _build_config("http://flag.example/up", "Bearer flag", "0")
    assert config.endpoint == "http://flag.example/up"
    assert config.authorization == "Bearer flag"
    assert config.timeout is None


def test_build_config_requires_valid_endpoint():
    with pytest.raises(CLIError, match="no endpoint"):
        _build_config(None, None, None)
    with pytest.raises(CLIError, match="absolute"):
        _build_config("ftp://example.com/up", None, None)


def test_exit_codes():
    assert _exit_code(UploadOutcome.ok()) == 0
    assert _exit_code(UploadOutcome.fail(ErrorKind.SERVER_ERROR, "500")) == 1
    assert _exit_code(UploadOutcome.fail(ErrorKind.CANCELLED, "cancelled")) == 130


def test_human_size():
    assert _human_size(0) == "0 B"
    assert _human_size(1023) == "1023 B"
    assert _human_size(1536) == "1.50 KB"
    assert _human_size(5 * 1024 * 1024) == "5.00 MB"


def test_describe_outcome():
    assert describe_outcome(UploadOutcome.ok(200)) == "Uploaded"
    assert describe_outcome(UploadOutcome.ok(200).with_dropped(["x.pdf"])) == (
        "Uploaded (1 file(s) skipped)"
    )
    failed = UploadOutcome.fail(ErrorKind.SERVER_ERROR, "500", status_code=500, body="oops\n")
    assert describe_outcome(failed) == "Upload failed [server_error]: 500\noops"


def test_setup_logging_defaults_to_silent():
    mode = _setup_logging(debug=False, silent=False, log_level=None)
    assert mode == "silent"
    assert logging.getLogger().isEnabledFor(logging.CRITICAL) is False


def test_silent_flag_disables_all_logging():
    mode = _setup_logging(debug=True, silent=True, log_level="error")
    assert mode == "silent"
    assert logging.getLogger().isEnabledFor(logging.ERROR) is False
    assert logging.getLogger().isEnabledFor(logging.CRITICAL) is False


def test_silent_help_matches_behavior():
    help_text = " ".join(_build_parser().format_help().split())
    assert "--silent Disable all logging output" in help_text


def test_setup_logging_debug_mode():
    mode = _setup_logging(debug=True, silent=False, log_level=None)
    assert mode == "DEBUG"
    assert logging.getLogger().isEnabledFor(logging.DEBUG) is True


def test_setup_logging_explicit_level():
    mode = _setup_logging(debug=False, silent=False, log_level="warning")
    assert mode == "WARNING"
    assert logging.getLogger().isEnabledFor(logging.INFO) is False


def test_run_cli_without_files_prints_help(capsys):
    assert run_cli([]) == 0
    assert "usage: docupload" in capsys.readouterr().out


def test_run_cli_without_endpoint_fails(tmp_path, capsys):
    doc = tmp_path / "terms.pdf"
    doc.write_bytes(b"%PDF")

    assert run_cli([str(doc)]) == 1
    assert "no endpoint" in capsys.readouterr().err


def test_run_cli_uploads(tmp_path, monkeypatch):
    doc = tmp_path / "terms.pdf"
    doc.write_bytes(b"%PDF")
    calls = {}

    async def fake_run_upload(paths, config):
        calls["paths"] = paths
        calls["config"] = config
        return 0

    monkeypatch.setattr(cli, "_run_upload", fake_run_upload)

    code = run_cli([str(doc), "--endpoint", "https://api.example.com/upload", "-t", "9"])

    assert code == 0
    assert calls["paths"] == [doc]
    assert calls["config"].timeout == 9.0


def test_run_cli_reads_default_env_file(tmp_path, monkeypatch):
    (tmp_path / ".env").write_text("DOCUPLOAD_ENDPOINT=https://env.example.com/upload\n")
    doc = tmp_path / "terms.pdf"
    doc.write_bytes(b"%PDF")
    calls = {}

    async def fake_run_upload(paths, config):
        calls["config"] = config
        return 1

    monkeypatch.setattr(cli, "_run_upload", fake_run_upload)

    assert run_cli([str(doc)]) == 1
    assert calls["config"].endpoint == "https://env.example.com/upload"
