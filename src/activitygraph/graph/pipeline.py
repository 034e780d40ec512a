"""
Concurrent page collection.

Pages of an activity map response are fetched by a small thread pool, but
only the calling thread touches the GraphBuilder: fetchers push bodies
into a bounded queue and the caller drains it. Fetch order therefore
never matters, and the builder needs no locking.

The transport is whatever callable the caller supplies; this module does
no network I/O of its own.
"""

import logging
import queue
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from ..errors import ActivityGraphError, PageFormatError, RecordError, TransportError
from ..ingest.page import ActivityPage, PlatformWarning
from ..query.time import SECONDS_THRESHOLD
from .builder import GraphBuilder
from .topology import TopologyGraph

logger = logging.getLogger(__name__)

FetchPage = Callable[[Any], Any]


@dataclass
class TopologyResult:
    """Graph plus everything that went wrong while building it."""
    graph: TopologyGraph
    errors: tuple[RecordError, ...]
    page_errors: list[ActivityGraphError] = field(default_factory=list)
    warnings: list[PlatformWarning] = field(default_factory=list)
    pages: int = 0

    @property
    def is_complete(self) -> bool:
        """No platform warnings and every page was fetched and parsed."""
        return not self.warnings and not self.page_errors


def collect_pages(
    fetch_page: FetchPage,
    pages: Iterable,
    max_workers: int = 4,
    queue_size: int = 8,
    fail_fast: bool = False,
    builder: Optional[GraphBuilder] = None,
    threshold: int = SECONDS_THRESHOLD,
) -> TopologyResult:
    """
    Fetch pages concurrently and aggregate them into one topology.

    fetch_page(page_id) must return a page body (mapping or JSON text).
    A page that fails to fetch or parse is recorded in page_errors with a
    "while processing page N" context, or raised when fail_fast is set.
    """
    if max_workers < 1:
        raise ValueError("max_workers must be at least 1")
    builder = builder or GraphBuilder(threshold=threshold)
    handoff: queue.Queue = queue.Queue(maxsize=max(1, queue_size))
    page_ids = list(pages)

    def _fetch(page_id):
        try:
            body = fetch_page(page_id)
        except BaseException as e:
            handoff.put((page_id, None, e))
        else:
            handoff.put((page_id, body, None))

    page_errors: list[ActivityGraphError] = []
    warnings: list[PlatformWarning] = []
    consumed = 0

    with ThreadPoolExecutor(
        max_workers=max_workers, thread_name_prefix="activitymap-fetch"
    ) as pool:
        futures = [pool.submit(_fetch, p) for p in page_ids]
        pending = len(futures)
        try:
            while pending:
                page_id, body, exc = handoff.get()
                pending -= 1
                context = f"while processing page {page_id}"

                if exc is not None and not isinstance(exc, Exception):
                    raise exc
                if exc is not None:
                    err: ActivityGraphError = TransportError.wrap(exc, context)
                    logger.warning("Page %s fetch failed: %s", page_id, exc)
                else:
                    try:
                        page = ActivityPage.from_body(body, threshold)
                    except PageFormatError as e:
                        err = e.add_context(context)
                        logger.warning("Page %s is malformed: %s", page_id, e.message)
                    else:
                        builder.add_page(page, context=context)
                        warnings.extend(page.warnings)
                        consumed += 1
                        logger.debug("Page %s: %d records", page_id, len(page))
                        continue

                if fail_fast:
                    raise err
                page_errors.append(err)
        finally:
            if pending:
                pending -= sum(1 for f in futures if f.cancel())
                # unblock fetchers still waiting on the bounded queue
                for _ in range(pending):
                    handoff.get()

    graph, errors = builder.finalize()
    return TopologyResult(
        graph=graph,
        errors=errors,
        page_errors=page_errors,
        warnings=warnings,
        pages=consumed,
    )
