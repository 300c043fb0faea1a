"""
Grammar refresh service backed by an external command.
"""

import logging
import subprocess
from typing import List, Optional, Sequence

from sampler_lite.errors import ExternalServiceError

logger = logging.getLogger(__name__)


DEFAULT_COMMAND = ("node", "../lsp.js", "COMPLETIONS")
DEFAULT_PRELUDE = "../autoregressive.prelude"


class SubprocessGrammarService:
    """Runs the completion command once per request and returns its stdout.

    The command receives the grammar identifier, the prelude path, the text
    of the newly accepted token and the generated-so-far text as arguments:

        <command...> <grammar_id> --prelude <path> --debug --new-token <text> <preceding>

    Attributes:
        command: Executable and leading arguments
        prelude_path: Prelude file passed with --prelude, omitted when None
        timeout: Seconds to wait before giving up on the command
    """

    def __init__(
        self,
        command: Sequence[str] = DEFAULT_COMMAND,
        prelude_path: Optional[str] = DEFAULT_PRELUDE,
        timeout: Optional[float] = 30.0,
        debug: bool = True,
    ):
        if not command:
            raise ValueError("command cannot be empty")
        self.command = list(command)
        self.prelude_path = prelude_path
        self.timeout = timeout
        self.debug = debug

    def build_args(
        self, grammar_id: str, preceding_text: str, new_token_text: str
    ) -> List[str]:
        """Build the argument vector for one request."""
        args = self.command + [grammar_id]
        if self.prelude_path is not None:
            args += ["--prelude", self.prelude_path]
        if self.debug:
            args.append("--debug")
        args += ["--new-token", new_token_text, preceding_text]
        return args

    def request(self, grammar_id: str, preceding_text: str, new_token_text: str) -> str:
        """Run the command and return its stdout.

        Raises:
            ExternalServiceError: If the command cannot be run, fails or times out
        """
        args = self.build_args(grammar_id, preceding_text, new_token_text)
        try:
            result = subprocess.run(
                args,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=self.timeout,
                check=True,
            )
        except FileNotFoundError as e:
            raise ExternalServiceError(f"grammar service not found: {e}") from e
        except subprocess.TimeoutExpired as e:
            raise ExternalServiceError(
                f"grammar service timed out after {self.timeout}s"
            ) from e
        except subprocess.CalledProcessError as e:
            raise ExternalServiceError(
                f"grammar service exited with status {e.returncode}: {e.stderr}"
            ) from e
        except OSError as e:
            raise ExternalServiceError(f"grammar service could not be run: {e}") from e

        if result.stderr:
            logger.debug("grammar service stderr: %s", result.stderr)
        return result.stdout
