"""Parallel loading of Go source files into SourceUnit models."""

from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Dict, Optional, Union
import concurrent.futures
import logging
import threading
import time

from ..config import Config
from ..models.source import LoadResult, ParseFailure, SourceUnit
from ..utils.logger import ParseProgress
from .source_model_builder import AnalysisCancelled, SourceModelBuilder, SourceParseError

logger = logging.getLogger(__name__)


class SourceLoader:
    """Discover source files and build their models on a bounded worker pool.

    Every file is processed independently: a failure in one file is
    recorded as a ParseFailure and never aborts its siblings. The run
    deadline cancels pending and in-flight work and marks the result
    partial.
    """

    def __init__(self, config: Config, builder: Optional[SourceModelBuilder] = None):
        """Initialize the loader.

        Args:
            config: Analyzer configuration
            builder: SourceModelBuilder to use (created when omitted)
        """
        self.config = config
        self.builder = builder or SourceModelBuilder()

    def load(self, root: str, deadline_ms: Optional[int] = None) -> LoadResult:
        """Load every source file under a root path.

        Args:
            root: Directory or single file to analyze
            deadline_ms: Run deadline in milliseconds (None for no deadline)

        Returns:
            LoadResult with units and failures sorted by path

        Raises:
            ConfigError: If the root path does not exist or cannot be read
        """
        files = self.config.get_source_files(root)
        root_path = Path(root)
        relative = {
            self._relative_path(root_path, f): f
            for f in files
        }
        logger.info(f"Found {len(relative)} source files under {root}")

        result = LoadResult()
        if not relative:
            return result

        run_deadline = None
        if deadline_ms is not None:
            run_deadline = time.monotonic() + deadline_ms / 1000.0

        cancel_event = threading.Event()
        progress = ParseProgress(len(relative), logger)
        futures: Dict[Future, str] = {}

        executor = ThreadPoolExecutor(max_workers=self.config.concurrency_limit)
        try:
            for rel_path, file_path in relative.items():
                future = executor.submit(self._load_file, file_path, rel_path, cancel_event)
                futures[future] = rel_path

            timeout = None
            if run_deadline is not None:
                timeout = max(0.0, run_deadline - time.monotonic())
            try:
                for future in as_completed(futures, timeout=timeout):
                    failed = future.exception() is not None or isinstance(future.result(), ParseFailure)
                    progress.update(futures[future], failed=failed)
            except concurrent.futures.TimeoutError:
                logger.warning(f"Run deadline of {deadline_ms} ms exceeded, cancelling remaining files")
                cancel_event.set()
                result.partial = True
                for future in futures:
                    future.cancel()
        finally:
            executor.shutdown(wait=True)

        for future, rel_path in sorted(futures.items(), key=lambda item: item[1]):
            if future.cancelled():
                continue
            try:
                outcome = future.result()
            except AnalysisCancelled:
                logger.debug(f"Cancelled: {rel_path}")
                continue
            if isinstance(outcome, ParseFailure):
                result.failures.append(outcome)
            else:
                result.units.append(outcome)

        progress.complete(partial=result.partial)
        return result

    def _load_file(
        self,
        file_path: Path,
        rel_path: str,
        cancel_event: threading.Event
    ) -> Union[SourceUnit, ParseFailure]:
        """Read and build one file.

        Args:
            file_path: File to read
            rel_path: Path recorded in the model
            cancel_event: Run cancellation event

        Returns:
            SourceUnit, or ParseFailure if the file could not be analyzed

        Raises:
            AnalysisCancelled: If the run was cancelled while building
        """
        deadline = time.monotonic() + self.config.per_file_timeout_ms / 1000.0
        try:
            content = file_path.read_bytes()
            return self.builder.build(
                rel_path,
                content,
                deadline=deadline,
                cancel_event=cancel_event
            )
        except AnalysisCancelled:
            raise
        except SourceParseError as e:
            logger.warning(f"Parse failure in {rel_path}: {e}")
            return ParseFailure(path=rel_path, message=str(e))
        except OSError as e:
            logger.warning(f"Cannot read {rel_path}: {e}")
            return ParseFailure(path=rel_path, message=f"cannot read file: {e.strerror or e}")
        except Exception as e:
            logger.error(f"Unexpected error analyzing {rel_path}: {e}")
            return ParseFailure(path=rel_path, message=f"internal error: {e}")

    @staticmethod
    def _relative_path(root: Path, file_path: Path) -> str:
        if root.is_file():
            return file_path.name
        return file_path.relative_to(root).as_posix()
