"""Tests for the trustgate CLI."""

from click.testing import CliRunner

from trustgate import __version__
from trustgate.cli import main

# No external services and the in-memory quota backend.
OFFLINE_ENV = {
    "ANTHROPIC_API_KEY": "",
    "OPENAI_API_KEY": "",
    "TRUSTGATE_QUOTA_BACKEND": "memory",
    "TRUSTGATE_POLICY_FILE": "",
    "TRUSTGATE_SWEEP_INTERVAL": "3600",
}


def test_version():
    result = CliRunner().invoke(main, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_policies_lists_operations():
    result = CliRunner().invoke(main, ["policies"], env=OFFLINE_ENV)
    assert result.exit_code == 0
    assert "post_creation_ip" in result.output
    assert "place_claim" in result.output


def test_detect_reports_severity():
    result = CliRunner().invoke(main, ["detect", "I love bacon"], env=OFFLINE_ENV)
    assert result.exit_code == 0
    assert "medium" in result.output
    assert "love bacon" in result.output


def test_detect_clean_text():
    result = CliRunner().invoke(main, ["detect", "Lentil soup for dinner"], env=OFFLINE_ENV)
    assert result.exit_code == 0
    assert "No domain policy matches" in result.output


def test_check_allows_clean_text_in_fallback_mode():
    result = CliRunner().invoke(main, ["check", "What a lovely lentil soup"], env=OFFLINE_ENV)
    assert result.exit_code == 0, result.output
    assert "allow" in result.output
    assert "fallback mode" in result.output


def test_check_blocks_domain_promotion():
    result = CliRunner().invoke(main, ["check", "I love bacon"], env=OFFLINE_ENV)
    assert result.exit_code == 1
    assert "block" in result.output


def test_check_unknown_operation():
    result = CliRunner().invoke(main, ["check", "hello", "--operation", "nuke"], env=OFFLINE_ENV)
    assert result.exit_code == 2
    assert "Unknown protected operation" in result.output


def test_check_rejects_blank_text():
    result = CliRunner().invoke(main, ["check", "   "], env=OFFLINE_ENV)
    assert result.exit_code == 1
    assert "Content is required" in result.output
