import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Sequence

from xmlmc.facade.xmlmc_facade import XmlmcFacade

from .exceptions import ConfigurationError
from .models import AssetTypeContext, Counters, Outcome, SourceRow
from .reconciler import AssetReconciler

logger = logging.getLogger(__name__)

MIN_CONCURRENCY = 1
MAX_CONCURRENCY = 10


def validate_concurrency(value: Any) -> int:
    """
    Validates the maximum number of rows processed at once.

    Accepts an int or an integer string between 1 and 10 inclusive.

    Raises:
        ConfigurationError: If the value is not an integer in range.
    """
    if isinstance(value, bool):
        raise ConfigurationError(f"Unable to convert maximum concurrency of [{value}] to an integer")
    try:
        concurrency = int(str(value).strip())
    except (TypeError, ValueError):
        raise ConfigurationError(f"Unable to convert maximum concurrency of [{value}] to an integer")
    if not MIN_CONCURRENCY <= concurrency <= MAX_CONCURRENCY:
        raise ConfigurationError(
            f"The maximum concurrent assets allowed is between {MIN_CONCURRENCY} and "
            f"{MAX_CONCURRENCY} (inclusive); got {concurrency}"
        )
    return concurrency


class ProgressTracker:
    """Counts completed rows under its own lock and logs progress periodically."""

    def __init__(self, total: int, log_every: int = 50, label: str = "assets"):
        self.total = total
        self.log_every = log_every
        self.label = label
        self.completed = 0
        self._lock = threading.Lock()

    def advance(self) -> int:
        with self._lock:
            self.completed += 1
            completed = self.completed
        if completed == self.total or (self.log_every and completed % self.log_every == 0):
            logger.info(f"Progress: {completed}/{self.total} {self.label} processed")
        return completed


class ConcurrencyCoordinator:
    """
    Fans rows out to a bounded pool of workers.

    At most ``max_concurrent`` rows are between the admission gate and their
    final outcome at any time. Each worker builds its own facade, and
    outcomes are merged into the counters by the dispatching thread.
    """

    def __init__(self, reconciler: AssetReconciler, facade_factory: Callable[[], XmlmcFacade],
                 max_concurrent: int = 1, progress_every: int = 50):
        self.reconciler = reconciler
        self.facade_factory = facade_factory
        self.max_concurrent = validate_concurrency(max_concurrent)
        self.progress_every = progress_every
        self._gate = threading.BoundedSemaphore(self.max_concurrent)

    def _process(self, row: SourceRow, context: AssetTypeContext, progress: ProgressTracker) -> Outcome:
        with self._gate:
            try:
                return self.reconciler.reconcile(row, context, self.facade_factory())
            finally:
                progress.advance()

    def run(self, rows: Sequence[SourceRow], context: AssetTypeContext,
            counters: Counters) -> Counters:
        """
        Reconciles every row and records one outcome per row.

        Args:
            rows: The source rows for one asset type.
            context: The asset type of the rows.
            counters: Totals to record outcomes into.

        Returns:
            Counters: The same counters, after every row has finished.
        """
        if not rows:
            logger.info(f"No {context.name} rows to process")
            return counters

        logger.info(f"Processing {len(rows)} {context.name} assets "
                    f"({self.max_concurrent} concurrent)")
        progress = ProgressTracker(len(rows), self.progress_every, f"{context.name} assets")

        with ThreadPoolExecutor(max_workers=self.max_concurrent) as executor:
            futures = [executor.submit(self._process, row, context, progress) for row in rows]
            for future in as_completed(futures):
                try:
                    outcome = future.result()
                except Exception as e:
                    logger.error(f"Unexpected error processing asset row: {e}", exc_info=True)
                    outcome = Outcome.FAILED
                counters.record(outcome)

        logger.info(f"Processing Complete! {progress.completed}/{len(rows)} {context.name} assets")
        return counters
