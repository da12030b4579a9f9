"""Code actions — one-shot refactor/test/doc/fix prompts and commit messages."""

from __future__ import annotations

import logging

from llmwire.client import ChatClient, TextCallback
from llmwire.codeblocks import extract_code_blocks
from llmwire.config import Settings
from llmwire.models import CompletionOptions, LLMWireError, Message, Role
from llmwire.session import ChatSession

logger = logging.getLogger(__name__)

COMMIT_MESSAGE_TEMPERATURE = 0.3
COMMIT_MESSAGE_MAX_TOKENS = 256
COMMIT_SUMMARY_MAX_CHARS = 72

_REFACTOR_SYSTEM = (
    "You are a code refactoring assistant. Refactor the given code to improve readability, "
    "performance, and maintainability. Return ONLY the refactored code in a single code "
    "block. No explanations before or after."
)
_TESTS_SYSTEM = (
    "You are a test generation assistant. Generate comprehensive unit tests for the given "
    "code. Return ONLY the test code in a single code block. Use appropriate testing "
    "framework for the language. No explanations."
)
_DOCS_SYSTEM = (
    "You are a documentation assistant. Add comprehensive documentation (JSDoc, docstrings, "
    "or appropriate format) to the given code. Return ONLY the fully documented code in a "
    "single code block. No explanations."
)
_FIX_SYSTEM = (
    "You are a debugging assistant. Fix the error in the given code. Return ONLY the fixed "
    "code in a single code block. No explanations before or after."
)
_SIMPLIFY_SYSTEM = (
    "You are a code simplification assistant. Simplify the given code while maintaining the "
    "same functionality. Return ONLY the simplified code in a single code block. "
    "No explanations."
)
_CONVERT_SYSTEM = (
    "You are a code conversion assistant. Convert the given code from {source} to {target}. "
    "Return ONLY the converted code in a single code block. No explanations."
)
_COMMIT_SYSTEM = (
    "You are a git commit message assistant. Write a clear, concise commit message following "
    "conventional commits style. First line should be a short summary (under "
    f"{COMMIT_SUMMARY_MAX_CHARS} chars). Optionally add a blank line and a longer description "
    "if the changes are complex. Output ONLY the commit message text, nothing else."
)


def _fenced(code: str, language: str) -> str:
    return f"```{language}\n{code}\n```"


def first_code_block_or_text(text: str) -> str:
    """Return the first fenced block's code, or *text* unchanged when there is none."""
    blocks = extract_code_blocks(text)
    return blocks[0].code if blocks else text


async def explain_code(
    session: ChatSession,
    code: str,
    language: str,
    on_chunk: TextCallback | None = None,
) -> str:
    """Ask for an explanation as a regular chat turn, so it lands in the history."""
    prompt = (
        f"Explain the following {language} code in detail. What does it do, and why?\n\n"
        f"{_fenced(code, language)}"
    )
    return await session.send(prompt, on_chunk=on_chunk)


class CodeAssistant:
    """Runs single-shot code actions through a ChatClient.

    Each action sends a system and a user prompt without streaming, at the
    configured code temperature, and returns the first code block of the
    reply (or the whole reply when it has no block). Failures are stored in
    ``last_error`` and the action returns ``""``.
    """

    def __init__(self, client: ChatClient, settings: Settings | None = None) -> None:
        self.client = client
        self.settings = settings or client.settings
        self.is_busy = False
        self.last_error: str | None = None

    async def _run_code_action(self, system_prompt: str, user_prompt: str) -> str:
        self.is_busy = True
        self.last_error = None
        messages = [
            Message(role=Role.SYSTEM, content=system_prompt),
            Message(role=Role.USER, content=user_prompt),
        ]
        options = CompletionOptions(temperature=self.settings.code_temperature, stream=False)
        try:
            result = await self.client.send_chat_completion(messages, options)
        except LLMWireError as e:
            self.last_error = str(e)
            logger.info("Code action failed: %s", e)
            return ""
        finally:
            self.is_busy = False
        return first_code_block_or_text(result)

    async def refactor(self, code: str, language: str) -> str:
        return await self._run_code_action(
            _REFACTOR_SYSTEM,
            f"Refactor this {language} code:\n\n{_fenced(code, language)}",
        )

    async def generate_tests(self, code: str, language: str) -> str:
        return await self._run_code_action(
            _TESTS_SYSTEM,
            f"Generate unit tests for this {language} code:\n\n{_fenced(code, language)}",
        )

    async def generate_docs(self, code: str, language: str) -> str:
        return await self._run_code_action(
            _DOCS_SYSTEM,
            f"Add documentation to this {language} code:\n\n{_fenced(code, language)}",
        )

    async def fix_error(self, code: str, language: str, error_message: str) -> str:
        return await self._run_code_action(
            _FIX_SYSTEM,
            f"Fix this {language} code.\n\nError: {error_message}\n\n"
            f"Code:\n{_fenced(code, language)}",
        )

    async def simplify(self, code: str, language: str) -> str:
        return await self._run_code_action(
            _SIMPLIFY_SYSTEM,
            f"Simplify this {language} code:\n\n{_fenced(code, language)}",
        )

    async def convert_language(self, code: str, source: str, target: str) -> str:
        return await self._run_code_action(
            _CONVERT_SYSTEM.format(source=source, target=target),
            f"Convert this {source} code to {target}:\n\n{_fenced(code, source)}",
        )

    async def generate_commit_message(
        self,
        diff: str,
        on_chunk: TextCallback | None = None,
        on_done: TextCallback | None = None,
    ) -> str:
        """Stream a conventional-commits message for *diff*."""
        self.is_busy = True
        self.last_error = None
        messages = [
            Message(role=Role.SYSTEM, content=_COMMIT_SYSTEM),
            Message(
                role=Role.USER,
                content=f"Generate a commit message for these changes:\n\n{diff}",
            ),
        ]
        options = CompletionOptions(
            temperature=COMMIT_MESSAGE_TEMPERATURE,
            max_tokens=COMMIT_MESSAGE_MAX_TOKENS,
        )
        try:
            return await self.client.send_chat_completion(
                messages, options, on_chunk=on_chunk, on_done=on_done
            )
        except LLMWireError as e:
            self.last_error = str(e)
            logger.info("Commit message generation failed: %s", e)
            return ""
        finally:
            self.is_busy = False
