"""Tests for CLI commands."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

from typer.testing import CliRunner

from llmwire.cli import app
from llmwire.models import ConnectionResult

runner = CliRunner()


class TestCLI:
    def test_help(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "llmwire" in result.output

    def test_chat_command_help(self):
        result = runner.invoke(app, ["chat", "--help"])
        assert result.exit_code == 0
        assert "--provider" in result.output

    def test_providers_lists_builtins(self):
        result = runner.invoke(app, ["providers"])
        assert result.exit_code == 0
        assert "openai" in result.output
        assert "anthropic" in result.output
        assert "google" in result.output

    def test_chat_without_key_fails(self):
        result = runner.invoke(app, ["chat", "hello"])
        assert result.exit_code == 1
        assert "No API key configured for OpenAI" in result.output

    def test_chat_unknown_provider(self):
        result = runner.invoke(app, ["chat", "hello", "--provider", "mistral"])
        assert result.exit_code == 1
        assert "Unknown provider" in result.output

    def test_chat_with_mock_session(self):
        with patch("llmwire.cli.ChatSession") as mock_session_cls:
            instance = mock_session_cls.return_value
            instance.send = AsyncMock(return_value="Bonjour")
            instance.last_error = None

            result = runner.invoke(app, ["chat", "Say hi in French", "--no-stream"])
            assert result.exit_code == 0
            assert "Bonjour" in result.output
            options = instance.send.call_args.kwargs["options"]
            assert options.stream is False

    def test_test_connection_success(self):
        with patch("llmwire.cli.ChatClient") as mock_client_cls:
            instance = mock_client_cls.return_value
            instance.test_provider_connection = AsyncMock(
                return_value=ConnectionResult(success=True)
            )
            result = runner.invoke(
                app, ["test-connection", "anthropic"], env={"ANTHROPIC_API_KEY": "sk-ant"}
            )
            assert result.exit_code == 0
            assert "connection OK" in result.output

    def test_test_connection_failure(self):
        with patch("llmwire.cli.ChatClient") as mock_client_cls:
            instance = mock_client_cls.return_value
            instance.test_provider_connection = AsyncMock(
                return_value=ConnectionResult(success=False, error="HTTP 401")
            )
            result = runner.invoke(
                app, ["test-connection", "openai"], env={"OPENAI_API_KEY": "sk-bad"}
            )
            assert result.exit_code == 1
            assert "HTTP 401" in result.output

    def test_test_connection_unknown_provider(self):
        result = runner.invoke(app, ["test-connection", "mistral"])
        assert result.exit_code == 1
        assert "Unknown provider" in result.output

    def test_bad_providers_file_is_reported(self, tmp_path):
        bad = tmp_path / "providers.yaml"
        bad.write_text("providers: [\n")
        result = runner.invoke(app, ["providers"], env={"LLMWIRE_PROVIDERS_FILE": str(bad)})
        assert result.exit_code == 1
        assert "Failed to load providers" in result.output
        assert isinstance(result.exception, SystemExit)

    def test_chat_keeps_system_prompt_with_context(self, tmp_path):
        source = tmp_path / "a.py"
        source.write_text("x = 1\n")
        with patch("llmwire.cli.ChatSession") as mock_session_cls:
            instance = mock_session_cls.return_value
            instance.send = AsyncMock(return_value="ok")
            instance.last_error = None
            result = runner.invoke(
                app, ["chat", "hi", "--system", "Be terse.", "--context", str(source)]
            )
            assert result.exit_code == 0
            assert instance.send.call_args.kwargs["options"].system_prompt == "Be terse."
            instance.add_context.assert_called_once()

    def test_code_action(self, tmp_path):
        source = tmp_path / "slow.py"
        source.write_text("def f(): return 1\n")
        with patch("llmwire.cli.CodeAssistant") as mock_assistant_cls:
            instance = mock_assistant_cls.return_value
            instance.simplify = AsyncMock(return_value="f = lambda: 1")
            instance.last_error = None
            result = runner.invoke(app, ["code", "simplify", str(source)])
            assert result.exit_code == 0
            assert "f = lambda: 1" in result.output
            instance.simplify.assert_called_once_with("def f(): return 1\n", "py")

    def test_code_convert_requires_target(self, tmp_path):
        source = tmp_path / "a.py"
        source.write_text("pass\n")
        result = runner.invoke(app, ["code", "convert", str(source)])
        assert result.exit_code == 1
        assert "--to" in result.output

    def test_code_action_failure(self, tmp_path):
        source = tmp_path / "a.py"
        source.write_text("pass\n")
        with patch("llmwire.cli.CodeAssistant") as mock_assistant_cls:
            instance = mock_assistant_cls.return_value
            instance.refactor = AsyncMock(return_value="")
            instance.last_error = "API error 500"
            result = runner.invoke(app, ["code", "refactor", str(source)])
            assert result.exit_code == 1
            assert "API error 500" in result.output

    def test_commit_message_from_stdin(self):
        async def fake_generate(diff, on_chunk=None, on_done=None):
            on_chunk("fix: handle empty input")
            return "fix: handle empty input"

        with patch("llmwire.cli.CodeAssistant") as mock_assistant_cls:
            instance = mock_assistant_cls.return_value
            instance.generate_commit_message = AsyncMock(side_effect=fake_generate)
            instance.last_error = None
            result = runner.invoke(app, ["commit-message"], input="- a\n+ b\n")
            assert result.exit_code == 0
            assert "fix: handle empty input" in result.output
            assert instance.generate_commit_message.call_args.args[0] == "- a\n+ b\n"

    def test_commit_message_empty_diff(self):
        result = runner.invoke(app, ["commit-message"], input="")
        assert result.exit_code == 1
        assert "Empty diff" in result.output

    def test_tokens(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("a" * 100)
        result = runner.invoke(app, ["tokens", str(path), "--budget", "10"])
        assert result.exit_code == 0
        assert "~25 tokens" in result.output
        assert "Exceeds 10 tokens" in result.output

    def test_blocks(self, tmp_path):
        path = tmp_path / "answer.md"
        path.write_text("Here:\n```js\nconst x=1;\n```\nDone")
        result = runner.invoke(app, ["blocks", str(path)])
        assert result.exit_code == 0
        assert "js" in result.output
        assert "const x=1;" in result.output
