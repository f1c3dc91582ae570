"""
Tests for union-find clustering.
"""

from processing.dedup.clustering import UnionFind, cluster_candidates
from processing.dedup.records import CandidatePair


def pair(a, b, score=0.8):
    return CandidatePair(listing_a_id=a, listing_b_id=b, score=score)


class TestUnionFind:
    def test_singletons(self):
        uf = UnionFind()
        uf.add("a")
        uf.add("b")
        assert not uf.connected("a", "b")
        assert len(uf) == 2

    def test_union_is_transitive(self):
        uf = UnionFind()
        uf.union("a", "b")
        uf.union("b", "c")
        uf.union("x", "y")

        assert uf.connected("a", "c")
        assert not uf.connected("a", "x")
        assert sorted(sorted(c) for c in uf.components()) == [["a", "b", "c"], ["x", "y"]]

    def test_long_chain_does_not_recurse(self):
        uf = UnionFind()
        n = 50_000
        for i in range(n - 1):
            # Always attach the growing chain under a fresh node
            uf._parent[i] = i + 1
            uf._size.setdefault(i, 1)
        uf.add(n - 1)

        assert uf.find(0) == n - 1
        # Path compressed: 0 now points straight at the root
        assert uf._parent[0] == n - 1


class TestClusterCandidates:
    def test_transitive_cluster(self):
        clusters = cluster_candidates([pair("a", "b"), pair("b", "c")])

        assert len(clusters) == 1
        assert clusters[0].member_ids == {"a", "b", "c"}
        assert len(clusters[0].candidates) == 2

    def test_disjoint_clusters_ordered(self):
        clusters = cluster_candidates([pair("x", "y"), pair("a", "b")])
        assert [sorted(c.member_ids) for c in clusters] == [["a", "b"], ["x", "y"]]

    def test_threshold_filters_pairs(self):
        clusters = cluster_candidates(
            [pair("a", "b", 0.9), pair("b", "c", 0.4)],
            threshold=0.5,
        )
        assert [c.member_ids for c in clusters] == [{"a", "b"}]

    def test_every_pair_lands_in_its_cluster(self):
        candidates = [pair("a", "b"), pair("c", "d"), pair("b", "e"), pair("d", "f")]
        clusters = cluster_candidates(candidates)

        for candidate in candidates:
            owners = [
                c for c in clusters
                if {candidate.listing_a_id, candidate.listing_b_id} <= c.member_ids
            ]
            assert len(owners) == 1
            assert candidate in owners[0].candidates

    def test_empty(self):
        assert cluster_candidates([]) == []
