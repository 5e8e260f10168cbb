import logging
import threading
import time
from typing import Callable, Dict, Iterable, List, Optional

from executor.queue_executor import QueueExecutor
from models.queue_entry import QueueFilter
from utils.errors import MessagingError

logger = logging.getLogger("messaging_service")

# Upper bound on pages per tenant per run, so a store that keeps
# returning the same entries cannot spin forever.
MAX_PAGES_PER_RUN = 500


class QueuePoller:
    """
    External caller for the workflow queue: sends every due entry for a
    fixed set of tenants. Nothing in the engine fires on its own; this
    loop (or an operator) has to ask for ready entries.
    """

    def __init__(self, queue_executor: QueueExecutor, tenant_ids: Iterable[str],
                 interval_seconds: int = 60, sleep: Callable[[float], None] = time.sleep):
        self.queue_executor = queue_executor
        self.tenant_ids: List[str] = [t for t in tenant_ids if t]
        self.interval = interval_seconds
        self.sleep = sleep
        self._stop = threading.Event()
        self.running = False

    def run_once(self) -> Dict[str, int]:
        totals = {"sent": 0, "skipped": 0, "failed": 0, "errors": 0}
        for tenant_id in self.tenant_ids:
            self._drain_tenant(tenant_id, totals)
        logger.info(
            f"[Poller] Run finished: {totals['sent']} sent, {totals['skipped']} skipped, "
            f"{totals['failed']} failed, {totals['errors']} errors"
        )
        return totals

    def start(self, max_runs: Optional[int] = None):
        """Blocks, running `run_once` every interval until `stop()` is called."""
        if self.running:
            return
        self.running = True
        self._stop.clear()
        logger.info(f"[Poller] Started for {len(self.tenant_ids)} tenants (every {self.interval}s)")

        runs = 0
        while not self._stop.is_set():
            try:
                self.run_once()
            except Exception as e:
                logger.error(f"[Poller] Run failed: {e}")
            runs += 1
            if max_runs is not None and runs >= max_runs:
                break
            self.sleep(self.interval)

        self.running = False
        logger.info("[Poller] Stopped.")

    def stop(self):
        self._stop.set()

    def _drain_tenant(self, tenant_id: str, totals: Dict[str, int]):
        attempted = set()
        for _ in range(MAX_PAGES_PER_RUN):
            items = [i for i in self.queue_executor.list_entries(tenant_id, QueueFilter.READY) if i.id not in attempted]
            if not items:
                return
            for item in items:
                attempted.add(item.id)
                try:
                    result = self.queue_executor.send(tenant_id, item.id)
                except MessagingError as e:
                    # Another caller acted on the entry first, or the store failed.
                    logger.warning(f"[Poller] Entry {item.id} not sent: {e}")
                    totals["errors"] += 1
                    continue
                totals[result.outcome.status.value] += 1
        logger.warning(f"[Poller] Tenant {tenant_id} still has ready entries after {MAX_PAGES_PER_RUN} pages")
