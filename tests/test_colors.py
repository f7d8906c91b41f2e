"""Tests for the cluster color palette."""

from signalgraph.colors import CLUSTER_PALETTE, STANDALONE_COLOR, color_for


class TestColorFor:
    def test_first_entry(self):
        assert color_for(0).name == "coral"

    def test_sequence_follows_palette(self):
        names = [color_for(i).name for i in range(len(CLUSTER_PALETTE))]
        assert names == ["coral", "lavender", "sage", "gold", "slate"]

    def test_cycles_after_palette_size(self):
        n = len(CLUSTER_PALETTE)
        assert color_for(n) == color_for(0)
        assert color_for(n + 2) == color_for(2)
        assert color_for(3 * n + 4) == color_for(4)

    def test_palette_entries_distinct(self):
        assert len({c.node for c in CLUSTER_PALETTE}) == len(CLUSTER_PALETTE)

    def test_standalone_not_in_palette(self):
        assert STANDALONE_COLOR not in CLUSTER_PALETTE
        assert STANDALONE_COLOR.text == "#6b6b7b"
