"""
Append-only session transcript.
"""

from pathlib import Path
from typing import Union

from sampler_lite.errors import LogWriteError

SEPARATOR = "================"


class TranscriptLogger:
    """Appends session text and service output to a plain-text file.

    Attributes:
        path: Transcript file, opened in append mode for every record
    """

    def __init__(self, path: Union[str, Path] = "log.txt"):
        self.path = Path(path)

    def append(self, session_text: str, service_output: str = "") -> None:
        """Append one record.

        Raises:
            LogWriteError: If the file cannot be opened or written
        """
        record = f"\n{SEPARATOR}\n{session_text}\n\n"
        if service_output:
            record += f"{service_output}\n"
        try:
            with self.path.open("a", encoding="utf-8") as f:
                f.write(record)
        except OSError as e:
            raise LogWriteError(f"unable to write transcript {self.path}: {e}") from e
