"""Run a merge with every rank as a thread in this process."""

from concurrent.futures import ThreadPoolExecutor

from .driver import ButterflyMerger
from .errors import ConfigurationError
from .transport import LocalGroup


def run_local(local_lists, config=None):
    """
    Merge `local_lists` (one sorted list per rank) and return each rank's
    MergeResult, ordered by rank. results[0].final_list is the merged list.
    """
    local_lists = list(local_lists)
    if not local_lists:
        raise ConfigurationError("need at least one rank")

    group = LocalGroup(len(local_lists))
    mergers = [ButterflyMerger(t, config) for t in group.transports()]

    # Check every input before any thread can block waiting on a bad rank
    prepared = [m._prepare(items) for m, items in zip(mergers, local_lists)]

    with ThreadPoolExecutor(max_workers=len(mergers), thread_name_prefix="rank") as pool:
        futures = [pool.submit(m.merge, items) for m, items in zip(mergers, prepared)]
        return [f.result() for f in futures]
