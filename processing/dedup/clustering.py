"""
Union-find clustering of candidate pairs into duplicate groups.
"""

from dataclasses import dataclass, field
from typing import Hashable, Iterable

from processing.dedup.records import CandidatePair


class UnionFind:
    """
    Disjoint-set forest with path compression and union by size.

    find() is iterative so long chains (A~B, B~C, ... ) never hit the
    recursion limit.
    """

    def __init__(self):
        self._parent: dict[Hashable, Hashable] = {}
        self._size: dict[Hashable, int] = {}

    def add(self, x: Hashable) -> None:
        if x not in self._parent:
            self._parent[x] = x
            self._size[x] = 1

    def find(self, x: Hashable) -> Hashable:
        self.add(x)

        root = x
        while self._parent[root] != root:
            root = self._parent[root]

        # Path compression
        while self._parent[x] != root:
            next_x = self._parent[x]
            self._parent[x] = root
            x = next_x

        return root

    def union(self, a: Hashable, b: Hashable) -> Hashable:
        root_a = self.find(a)
        root_b = self.find(b)
        if root_a == root_b:
            return root_a

        if self._size[root_a] < self._size[root_b]:
            root_a, root_b = root_b, root_a
        self._parent[root_b] = root_a
        self._size[root_a] += self._size.pop(root_b)
        return root_a

    def connected(self, a: Hashable, b: Hashable) -> bool:
        return self.find(a) == self.find(b)

    def components(self) -> list[set]:
        groups: dict[Hashable, set] = {}
        for x in self._parent:
            groups.setdefault(self.find(x), set()).add(x)
        return list(groups.values())

    def __len__(self) -> int:
        return len(self._parent)


@dataclass
class Cluster:
    """A connected component of candidate pairs."""
    member_ids: set[str] = field(default_factory=set)
    candidates: list[CandidatePair] = field(default_factory=list)

    def __repr__(self) -> str:
        return f"<Cluster(members={len(self.member_ids)}, pairs={len(self.candidates)})>"


def cluster_candidates(
    candidates: Iterable[CandidatePair],
    threshold: float = 0.50,
) -> list[Cluster]:
    """
    Group candidate pairs scoring >= threshold into transitively connected clusters.

    A~B and B~C put A, B and C in one cluster even if A and C were never
    scored against each other. Clusters are returned ordered by their
    smallest member id.
    """
    qualifying = [c for c in candidates if c.score >= threshold]

    uf = UnionFind()
    for candidate in qualifying:
        uf.union(candidate.listing_a_id, candidate.listing_b_id)

    clusters: dict[Hashable, Cluster] = {}
    for candidate in qualifying:
        root = uf.find(candidate.listing_a_id)
        cluster = clusters.setdefault(root, Cluster())
        cluster.member_ids.update((candidate.listing_a_id, candidate.listing_b_id))
        cluster.candidates.append(candidate)

    return sorted(clusters.values(), key=lambda c: min(c.member_ids))
