"""Per-pair extraction pipeline and the concurrent batch driver."""
import io
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, FIRST_COMPLETED, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional, Union

from tqdm import tqdm

from .atlas import locate_atlas
from .config import Config
from .constants import layout_stem, OUTPUT_EXTENSION
from .errors import SpriteError, ImageEncodeError, OutputWriteError, PairTimeout
from .extractor import ExtractedSprite, extract_part
from .layout import Role, load_layout, validate_against_atlas
from .overlay import assign_names

log = logging.getLogger(__name__)


@dataclass
class PairResult:
    """Outcome of processing one layout/atlas pair."""
    layout_path: Path
    outputs: list[Path] = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> str:
        return "OK" if self.error is None else type(self.error).__name__


@dataclass
class BatchReport:
    """Per-input results of a batch run, in input order."""
    results: list[PairResult] = field(default_factory=list)

    @property
    def succeeded(self) -> list[PairResult]:
        return [r for r in self.results if r.ok]

    @property
    def failed(self) -> list[PairResult]:
        return [r for r in self.results if not r.ok]

    @property
    def ok(self) -> bool:
        return not self.failed

    def summary_lines(self) -> list[str]:
        lines = []
        for r in self.results:
            if r.ok:
                lines.append(f"OK   {r.layout_path} ({len(r.outputs)} image(s))")
            else:
                lines.append(f"FAIL {r.layout_path} [{r.kind}] {r.error}")
        lines.append(f"{len(self.succeeded)} succeeded, {len(self.failed)} failed")
        return lines

    def log_summary(self):
        for line in self.summary_lines():
            if line.startswith("FAIL"):
                log.error(line)
            else:
                log.info(line)


def assemble_sprites(layout_path: Union[str, Path], config: Config) -> list[ExtractedSprite]:
    """Decode a layout, load its atlas and extract every part, in part order."""
    layout_path = Path(layout_path)
    layout = load_layout(layout_path)
    atlas = locate_atlas(layout_path)
    validate_against_atlas(layout, atlas.size)

    names = assign_names(layout_stem(layout_path), layout.parts)
    rule = config.mask_rule

    sprites = []
    for part in layout.parts:
        if part.role is Role.PRIMARY_VARIANT and part.size != layout.canvas_size:
            log.debug(f"EXTRACT part {part.index}: size {part.size} differs from canvas {layout.canvas_size}")
        sprites.append(extract_part(atlas, part, names[part.index], rule))
    return sprites


def encode_sprite(sprite: ExtractedSprite) -> bytes:
    """Encode a sprite as lossless PNG."""
    buf = io.BytesIO()
    try:
        sprite.to_image().save(buf, format="PNG")
    except (OSError, ValueError) as e:
        raise ImageEncodeError(f"{sprite.name}: {e}") from e
    return buf.getvalue()


class PairGuard:
    """Settles once whether a pair's output is kept or abandoned.

    The batch driver calls :meth:`abandon` on timeout; the writer calls
    :meth:`commit` after its last file. Whichever comes first wins.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._state: Optional[str] = None

    def _settle(self, state: str) -> bool:
        with self._lock:
            if self._state is None:
                self._state = state
            return self._state == state

    def abandon(self) -> bool:
        return self._settle("abandoned")

    def commit(self) -> bool:
        return self._settle("committed")

    @property
    def abandoned(self) -> bool:
        return self._state == "abandoned"


def _remove(paths: list[Path]):
    for path in paths:
        path.unlink(missing_ok=True)


def write_sprites(sprites: list[ExtractedSprite], output_dir: Union[str, Path],
                  guard: Optional[PairGuard] = None) -> list[Path]:
    """Write every sprite as ``<name>.png``; on failure or abandonment remove what this call wrote."""
    output_dir = Path(output_dir)
    encoded = [(sprite.name + OUTPUT_EXTENSION, encode_sprite(sprite)) for sprite in sprites]

    if guard is not None and guard.abandoned:
        raise PairTimeout("abandoned before writing output")

    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OutputWriteError(f"{output_dir}: {e.strerror or e}") from e

    written: list[Path] = []
    for filename, data in encoded:
        if guard is not None and guard.abandoned:
            _remove(written)
            raise PairTimeout(f"abandoned while writing, removed {len(written)} file(s)")
        outpath = output_dir / filename
        try:
            outpath.write_bytes(data)
        except OSError as e:
            _remove(written + [outpath])
            raise OutputWriteError(f"{outpath}: {e.strerror or e}") from e
        written.append(outpath)
        log.debug(f"SAVE {outpath}")

    if guard is not None and not guard.commit():
        _remove(written)
        raise PairTimeout(f"abandoned after writing, removed {len(written)} file(s)")
    return written


def process_layout(layout_path: Union[str, Path], config: Config,
                   guard: Optional[PairGuard] = None) -> PairResult:
    """Run the whole pipeline for one pair; SpriteErrors become a failed result."""
    layout_path = Path(layout_path)
    result = PairResult(layout_path)
    try:
        sprites = assemble_sprites(layout_path, config)
        result.outputs = write_sprites(sprites, config.output_dir, guard)
    except SpriteError as e:
        result.error = e
    return result


def _log_result(result: PairResult):
    if result.ok:
        log.debug(f"Completed: {result.layout_path} -> {len(result.outputs)} image(s)")
    else:
        log.error(f"{result.layout_path}: [{result.kind}] {result.error}")


def process_layouts_concurrent(layout_paths: Iterable[Union[str, Path]], config: Config) -> BatchReport:
    """Process independent layout/atlas pairs on a worker pool.

    One failing pair never stops the others. Inputs whose output stem repeats
    an earlier input's (ignoring case) are failed up front instead of
    overwriting its files.
    """
    paths = [Path(p) for p in layout_paths]
    results: dict[int, PairResult] = {}

    first_by_stem: dict[str, int] = {}
    todo = []
    for i, path in enumerate(paths):
        stem = layout_stem(path)
        key = stem.casefold()
        if key in first_by_stem:
            other = paths[first_by_stem[key]]
            results[i] = PairResult(path, error=OutputWriteError(
                f"{path}: output name '{stem}' already used by {other}"))
            _log_result(results[i])
        else:
            first_by_stem[key] = i
            todo.append(i)

    started: dict[int, float] = {}
    guards = {i: PairGuard() for i in todo}

    def _run(i: int) -> PairResult:
        started[i] = time.monotonic()
        return process_layout(paths[i], config, guards[i])

    poll = None if config.timeout is None else min(0.1, config.timeout)
    executor = ThreadPoolExecutor(max_workers=config.jobs)
    try:
        futures = {executor.submit(_run, i): i for i in todo}
        pending = set(futures)
        with tqdm(total=len(futures), desc="Extracting sprites", disable=not config.progress) as bar:
            while pending:
                done, pending = wait(pending, timeout=poll, return_when=FIRST_COMPLETED)
                for future in done:
                    i = futures[future]
                    try:
                        results[i] = future.result()
                    except Exception as e:
                        log.exception(f"{paths[i]}: unexpected failure")
                        results[i] = PairResult(paths[i], error=e)
                    _log_result(results[i])
                    bar.update()

                if config.timeout is None:
                    continue
                now = time.monotonic()
                for future in list(pending):
                    i = futures[future]
                    if i in started and now - started[i] > config.timeout and guards[i].abandon():
                        pending.discard(future)
                        results[i] = PairResult(paths[i], error=PairTimeout(
                            f"{paths[i]}: no result after {config.timeout}s"))
                        _log_result(results[i])
                        bar.update()
    finally:
        executor.shutdown(wait=not any(g.abandoned for g in guards.values()))

    return BatchReport([results[i] for i in range(len(paths))])
