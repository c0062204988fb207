from __future__ import annotations

import itertools


class GeneIdAllocator:
    """Process-wide source of unique node, connection and genome IDs.

    Each counter is an ``itertools.count``; drawing from it is a single atomic
    step under CPython, so IDs stay unique if evaluation is ever spread over
    threads.
    """

    def __init__(self, start: int = 1):
        self._node_ids = itertools.count(start)
        self._connection_ids = itertools.count(start)
        self._genome_ids = itertools.count(start)

    def new_node_id(self) -> int:
        return next(self._node_ids)

    def new_connection_id(self) -> int:
        return next(self._connection_ids)

    def new_genome_id(self) -> int:
        return next(self._genome_ids)

    def reserve(self, node_id: int = 0, connection_id: int = 0, genome_id: int = 0) -> None:
        # Used when genomes come from disk: later IDs must not collide with loaded ones.
        self._node_ids = _advanced_past(self._node_ids, node_id)
        self._connection_ids = _advanced_past(self._connection_ids, connection_id)
        self._genome_ids = _advanced_past(self._genome_ids, genome_id)


def _advanced_past(counter: itertools.count, seen: int) -> itertools.count:
    upcoming = next(counter)
    return itertools.count(max(upcoming, seen + 1))


GENE_IDS = GeneIdAllocator()
