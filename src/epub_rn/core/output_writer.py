"""Write conversion results to an output directory."""

import logging
from pathlib import Path

from epub_rn.errors import OutputWriteError
from epub_rn.models.output import CompleteEpubInfo

log = logging.getLogger(__name__)


class OutputWriter:
    """Write a converted book as JSON."""

    def __init__(self, output_dir: Path, filename: str = "book.json"):
        """Initialize output writer.

        Args:
            output_dir: Directory to write output files (created if absent)
            filename: Name of the JSON file inside ``output_dir``
        """
        self.output_dir = output_dir
        self.filename = filename

    @property
    def output_path(self) -> Path:
        return self.output_dir / self.filename

    def write(self, info: CompleteEpubInfo) -> Path:
        """Serialize ``info`` and return the written file's path."""
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            self.output_path.write_text(info.model_dump_json(indent=2), encoding="utf-8")
        except OSError as e:
            raise OutputWriteError(f"Could not write {self.output_path}", e) from e

        log.info("Wrote %s", self.output_path)
        return self.output_path
