"""Configuration and logging setup for the sprite extractor."""
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from tqdm import tqdm

from .overlay import DEFAULT_MASK_RULE, MaskRule, get_mask_rule

log = logging.getLogger(__name__)


class TqdmLoggingHandler(logging.StreamHandler):
    """Logging handler that uses tqdm.write() to avoid breaking progress bars."""

    def emit(self, record):
        try:
            msg = self.format(record)
            tqdm.write(msg)
        except Exception:
            self.handleError(record)


def setup_logging(debug: bool = False):
    """Configure logging based on debug flag."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format='[%(levelname).1s] %(message)s' if debug else '%(message)s',
        handlers=[TqdmLoggingHandler()],
    )


@dataclass
class Config:
    """Settings for one extraction run, passed explicitly to every pipeline call."""
    output_dir: Path = field(default_factory=lambda: Path("."))
    jobs: int = field(default_factory=lambda: os.cpu_count() or 4)
    overlay_mask: str = DEFAULT_MASK_RULE
    timeout: Optional[float] = None  # per pair, seconds
    debug: bool = False
    progress: bool = True

    def __post_init__(self):
        self.output_dir = Path(self.output_dir)
        if self.jobs < 1:
            raise ValueError(f"jobs must be at least 1, got {self.jobs}")
        get_mask_rule(self.overlay_mask)

    @property
    def mask_rule(self) -> MaskRule:
        return get_mask_rule(self.overlay_mask)
