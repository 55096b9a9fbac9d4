import json
import os
import tempfile
import unittest
from unittest.mock import patch, MagicMock

from io import StringIO

import httpx
import openai
from aisuite.provider import LLMError

from shell_ask import cli


def _raised_by_aisuite(error):
    try:
        raise error
    except Exception as e:
        try:
            raise LLMError(f"An error occurred: {e}")
        except LLMError as wrapped:
            return wrapped


def _completion(content):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    return response


class TestCommandLine(unittest.TestCase):
    """End-to-end tests for the `ask` command, with the model client mocked."""

    def setUp(self):
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        config_path = os.path.join(tmpdir.name, "config.json")
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump({}, f)

        # A clean environment, so the developer's own ASK_* settings never leak in.
        self.environ = {"ASK_CONFIG": config_path, "OPENAI_API_KEY": "sk-test", "SHELL": "/bin/bash"}
        env_patcher = patch.dict(os.environ, self.environ, clear=True)
        env_patcher.start()
        self.addCleanup(env_patcher.stop)

        client_patcher = patch("aisuite.Client")
        self.MockClient = client_patcher.start()
        self.addCleanup(client_patcher.stop)
        self.create = self.MockClient.return_value.chat.completions.create

        autocomplete_patcher = patch("argcomplete.autocomplete")
        autocomplete_patcher.start()
        self.addCleanup(autocomplete_patcher.stop)

    @patch("sys.stderr", new_callable=StringIO)
    @patch("sys.stdout", new_callable=StringIO)
    def test_undo_git_commit(self, mock_stdout, mock_stderr):
        """Verify the whole pipeline prints the command found in a fenced answer."""
        # Arrange
        self.create.return_value = _completion("```git reset --soft HEAD~1```")

        # Action
        cli.run_cli(["how", "can", "I", "undo", "git", "commit"])

        # Assert
        self.assertEqual(mock_stdout.getvalue(), "git reset --soft HEAD~1\n")
        messages = self.create.call_args.kwargs["messages"]
        self.assertEqual(messages[1]["role"], "user")
        self.assertIn("how can I undo git commit", messages[1]["content"])
        # No pane was supplied, so the no-pane prompt is used.
        self.assertNotIn("Recent terminal output", messages[1]["content"])

    @patch("sys.stdout", new_callable=StringIO)
    def test_pane_is_sent_when_available(self, mock_stdout):
        os.environ["ASK_PANE_CONTENT"] = "$ git push\nrejected: non-fast-forward"
        self.create.return_value = _completion("git pull --rebase")

        cli.run_cli(["fix", "this"])

        user_message = self.create.call_args.kwargs["messages"][1]["content"]
        self.assertIn("rejected: non-fast-forward", user_message)
        self.assertEqual(mock_stdout.getvalue(), "git pull --rebase\n")

    @patch("sys.stdout", new_callable=StringIO)
    def test_no_pane_flag(self, mock_stdout):
        os.environ["ASK_PANE_CONTENT"] = "top secret output"
        self.create.return_value = _completion("ls")

        cli.run_cli(["--no-pane", "list", "files"])

        user_message = self.create.call_args.kwargs["messages"][1]["content"]
        self.assertNotIn("top secret output", user_message)

    @patch("sys.stderr", new_callable=StringIO)
    @patch("sys.stdout", new_callable=StringIO)
    def test_debug_prints_the_raw_answer(self, mock_stdout, mock_stderr):
        raw = "Sure! Try this:\n```bash\nls -la\n```"
        self.create.return_value = _completion(raw)

        cli.run_cli(["--debug", "list", "files"])

        self.assertEqual(mock_stdout.getvalue(), raw + "\n")
        self.assertIn("list files", mock_stderr.getvalue())

    @patch("sys.stderr", new_callable=StringIO)
    @patch("sys.stdout", new_callable=StringIO)
    def test_missing_credential(self, mock_stdout, mock_stderr):
        """Verify a missing key fails before any client is built."""
        del os.environ["OPENAI_API_KEY"]

        with self.assertRaises(SystemExit) as cm:
            cli.run_cli(["list", "files"])

        self.assertEqual(cm.exception.code, 3)
        self.assertIn("Error: No API key found for provider 'openai'", mock_stderr.getvalue())
        self.assertEqual(mock_stdout.getvalue(), "")
        self.MockClient.assert_not_called()
        self.create.assert_not_called()

    @patch("shell_ask.ai.assistant.parse_command")
    @patch("sys.stderr", new_callable=StringIO)
    @patch("sys.stdout", new_callable=StringIO)
    def test_connection_refused(self, mock_stdout, mock_stderr, mock_parse_command):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        self.create.side_effect = openai.APIConnectionError(message="Connection refused", request=request)

        with self.assertRaises(SystemExit) as cm:
            cli.run_cli(["list", "files"])

        self.assertEqual(cm.exception.code, 4)
        self.assertIn("Could not reach OpenAI: Connection refused", mock_stderr.getvalue())
        self.assertEqual(mock_stdout.getvalue(), "")
        mock_parse_command.assert_not_called()

    @patch("sys.stderr", new_callable=StringIO)
    def test_backend_error(self, mock_stderr):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        self.create.side_effect = openai.BadRequestError(
            "model 'nope' does not exist", response=httpx.Response(400, request=request), body=None
        )

        with self.assertRaises(SystemExit) as cm:
            cli.run_cli(["--model", "nope", "list", "files"])

        self.assertEqual(cm.exception.code, 5)
        self.assertIn("model 'nope' does not exist", mock_stderr.getvalue())

    @patch("sys.stderr", new_callable=StringIO)
    def test_interrupt(self, mock_stderr):
        self.create.side_effect = KeyboardInterrupt

        with self.assertRaises(SystemExit) as cm:
            cli.run_cli(["list", "files"])

        self.assertEqual(cm.exception.code, 130)

    @patch("sys.stderr", new_callable=StringIO)
    def test_empty_query_is_a_usage_error(self, mock_stderr):
        for argv in ([], ["   "]):
            with self.subTest(argv=argv):
                with self.assertRaises(SystemExit) as cm:
                    cli.run_cli(argv)
                self.assertEqual(cm.exception.code, 2)
                self.assertIn("tell me what you want to do", mock_stderr.getvalue())
        self.create.assert_not_called()

    @patch("sys.stderr", new_callable=StringIO)
    def test_invalid_provider_choice(self, mock_stderr):
        with self.assertRaises(SystemExit) as cm:
            cli.run_cli(["--provider", "llamas", "list", "files"])
        self.assertEqual(cm.exception.code, 2)
        self.assertIn("invalid choice: 'llamas'", mock_stderr.getvalue())


class TestErrorsWrappedByAisuite(unittest.TestCase):
    """Exit statuses when aisuite's OpenAI provider wraps the SDK error in an LLMError."""

    def setUp(self):
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        config_path = os.path.join(tmpdir.name, "config.json")
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump({}, f)

        env_patcher = patch.dict(os.environ, {"ASK_CONFIG": config_path, "OPENAI_API_KEY": "sk-test"}, clear=True)
        env_patcher.start()
        self.addCleanup(env_patcher.stop)

        client_patcher = patch("aisuite.Client")
        self.create = client_patcher.start().return_value.chat.completions.create
        self.addCleanup(client_patcher.stop)

        autocomplete_patcher = patch("argcomplete.autocomplete")
        autocomplete_patcher.start()
        self.addCleanup(autocomplete_patcher.stop)

        self.request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")

    def _exit_code(self, error):
        self.create.side_effect = _raised_by_aisuite(error)
        with patch("sys.stderr", new_callable=StringIO), patch("sys.stdout", new_callable=StringIO) as out:
            with self.assertRaises(SystemExit) as cm:
                cli.run_cli(["list", "files"])
        self.assertEqual(out.getvalue(), "")
        return cm.exception.code

    def test_connection_refused_exits_4(self):
        self.assertEqual(self._exit_code(openai.APIConnectionError(request=self.request)), 4)

    def test_unauthorized_exits_3(self):
        error = openai.AuthenticationError(
            "Incorrect API key provided", response=httpx.Response(401, request=self.request), body=None
        )
        self.assertEqual(self._exit_code(error), 3)

    def test_invalid_response_exits_6(self):
        error = openai.APIResponseValidationError(response=httpx.Response(200, request=self.request), body=None)
        self.assertEqual(self._exit_code(error), 6)


class TestDebugOutput(unittest.TestCase):
    """Debug mode output and logging setup."""

    def setUp(self):
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.config_path = os.path.join(tmpdir.name, "config.json")
        with open(self.config_path, "w", encoding="utf-8") as f:
            json.dump({}, f)

        env_patcher = patch.dict(os.environ, {"ASK_CONFIG": self.config_path, "OPENAI_API_KEY": "sk-test"}, clear=True)
        env_patcher.start()
        self.addCleanup(env_patcher.stop)

        client_patcher = patch("aisuite.Client")
        self.create = client_patcher.start().return_value.chat.completions.create
        self.addCleanup(client_patcher.stop)

        autocomplete_patcher = patch("argcomplete.autocomplete")
        autocomplete_patcher.start()
        self.addCleanup(autocomplete_patcher.stop)

    @patch("sys.stderr", new_callable=StringIO)
    @patch("sys.stdout", new_callable=StringIO)
    def test_prompt_is_shown_when_the_request_fails(self, mock_stdout, mock_stderr):
        # Arrange
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        self.create.side_effect = openai.APIConnectionError(message="Connection refused", request=request)

        # Action
        with self.assertRaises(SystemExit) as cm:
            cli.run_cli(["--debug", "list", "large", "files"])

        # Assert
        self.assertEqual(cm.exception.code, 4)
        self.assertIn("list large files", mock_stderr.getvalue())
        self.assertIn("Could not reach OpenAI", mock_stderr.getvalue())
        self.assertEqual(mock_stdout.getvalue(), "")

    @patch("shell_ask.cli.configure_logging")
    @patch("sys.stderr", new_callable=StringIO)
    @patch("sys.stdout", new_callable=StringIO)
    def test_debug_from_config_file_switches_logging_to_debug(self, mock_stdout, mock_stderr, mock_configure):
        with open(self.config_path, "w", encoding="utf-8") as f:
            json.dump({"debug": True}, f)
        self.create.return_value = _completion("ls -S")

        cli.run_cli(["list", "large", "files"])

        self.assertEqual([c.args for c in mock_configure.call_args_list], [(False,), (True,)])
        self.assertIn("list large files", mock_stderr.getvalue())

    @patch("shell_ask.cli.configure_logging")
    @patch("sys.stdout", new_callable=StringIO)
    def test_debug_flag_configures_logging_once(self, mock_stdout, mock_configure):
        self.create.return_value = _completion("ls -S")

        with patch("sys.stderr", new_callable=StringIO):
            cli.run_cli(["--debug", "list", "large", "files"])

        mock_configure.assert_called_once_with(True)
