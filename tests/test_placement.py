#tests\test_placement.py

"""Test placement scoring, selection and persisted bindings."""

import json
from datetime import timedelta

import pytest

from cluster_registry.core.errors import (
    NoSuitableNode,
    PlacementNotFound,
    RecordParseError,
    RegistryValidationError,
)
from cluster_registry.core.models import NodeResources, NodeRole, NodeStatus
from cluster_registry.registry.placement import (
    rank_nodes,
    select_best_node,
    utilization_score,
)
from conftest import make_resources


class TestScore:
    """Utilization score."""

    def test_idle_node_scores_maximum(self):
        assert utilization_score(make_resources(0, 0, 0)) == 300

    def test_saturated_node_scores_zero(self):
        assert utilization_score(make_resources(100, 100, 100)) == 0

    def test_equal_weights(self):
        """Test CPU, RAM and disk count the same."""
        assert utilization_score(make_resources(10, 10, 10)) == 270
        assert utilization_score(make_resources(50, 50, 50)) == 150
        assert utilization_score(make_resources(30, 0, 0)) == utilization_score(make_resources(0, 0, 30))

    def test_out_of_range_values_are_clipped(self):
        """Test utilizations outside [0, 100] are clipped."""
        assert utilization_score(make_resources(150, -20, 100)) == 100


class TestSelector:
    """Pure selection over a snapshot."""

    def test_picks_highest_score(self, make_node):
        """S5: the less loaded node wins."""
        node_a = make_node("nA", resources=make_resources(10, 10, 10))
        node_b = make_node("nB", resources=make_resources(50, 50, 50))

        assert select_best_node([node_b, node_a], "web").id == "nA"

    def test_skips_nodes_without_resources(self, make_node):
        """Test nodes that never reported resources are not candidates."""
        bare = make_node("bare")
        busy = make_node("busy", resources=make_resources(90, 90, 90))

        assert select_best_node([bare, busy], NodeRole.WEB).id == "busy"

    def test_skips_non_online_nodes(self, make_node):
        """Test offline, maintenance and draining nodes are ignored."""
        idle = make_resources(0, 0, 0)
        nodes = [
            make_node("off", status=NodeStatus.OFFLINE, resources=idle),
            make_node("mnt", status=NodeStatus.MAINTENANCE, resources=idle),
            make_node("drn", status=NodeStatus.DRAINING, resources=idle),
            make_node("on", resources=make_resources(100, 100, 100)),
        ]

        assert select_best_node(nodes, "web").id == "on"

    def test_saturated_node_still_selectable(self, make_node):
        """Test a node at 100% everywhere (score 0) is still a candidate."""
        full = make_node("full", resources=make_resources(100, 100, 100))

        assert select_best_node([full], "web").id == "full"

    def test_filters_by_role(self, make_node):
        """Test nodes without the role are ignored, `all` nodes qualify."""
        mail = make_node("mail", roles=[NodeRole.MAIL], resources=make_resources(0, 0, 0))
        anything = make_node("any", roles=[NodeRole.ALL], resources=make_resources(80, 80, 80))

        assert select_best_node([mail, anything], "web").id == "any"

    def test_tie_keeps_first_in_iteration_order(self, make_node):
        """Test equal scores resolve to the earlier node."""
        first = make_node("z-first", resources=make_resources(20, 20, 20))
        second = make_node("a-second", resources=make_resources(20, 20, 20))

        assert select_best_node([first, second], "web").id == "z-first"
        assert select_best_node([second, first], "web").id == "a-second"

    def test_no_candidates_raises(self, make_node):
        """Test NoSuitableNode carries the role."""
        with pytest.raises(NoSuitableNode) as exc_info:
            select_best_node([make_node("bare")], "data")

        assert exc_info.value.role == "data"

    def test_custom_score_function(self, make_node):
        """Test the scoring locus can be swapped."""
        small = make_node("small", resources=make_resources(0, 0, 0, account_count=50))
        quiet = make_node("quiet", resources=make_resources(90, 90, 90, account_count=1))

        def fewest_accounts(resources: NodeResources) -> int:
            return -resources.account_count

        assert select_best_node([small, quiet], "web", score=fewest_accounts).id == "quiet"

    def test_rank_nodes_orders_best_first(self, make_node):
        """Test ranking is stable for ties."""
        nodes = [
            make_node("b", resources=make_resources(50, 50, 50)),
            make_node("a", resources=make_resources(10, 10, 10)),
            make_node("c", resources=make_resources(50, 50, 50)),
            make_node("bare"),
        ]

        ranked = [(node.id, score) for node, score in rank_nodes(nodes)]

        assert ranked == [("a", 270), ("b", 150), ("c", 150)]


class TestRegistryPlacement:
    """Selection through the registry and persisted bindings."""

    @pytest.fixture
    def two_web_nodes(self, registry, make_node):
        registry.save_node(make_node("nA", resources=make_resources(10, 10, 10)))
        registry.save_node(make_node("nB", resources=make_resources(50, 50, 50)))

    def test_scoring_and_status_changes(self, registry, two_web_nodes):
        """S5: best node, then fallback when draining, then none."""
        assert registry.get_best_node_for_placement("web").id == "nA"

        registry.update_node_status("nA", "draining")
        assert registry.get_best_node_for_placement("web").id == "nB"

        registry.update_node_status("nB", "draining")
        with pytest.raises(NoSuitableNode):
            registry.get_best_node_for_placement("web")

    def test_placement_is_persisted(self, registry, two_web_nodes, data_dir, clock):
        """S6: binding written to placements/a-42.json and overwritten."""
        node = registry.get_best_node_for_placement("web")
        registry.set_account_placement(42, node.id)

        path = data_dir / "placements" / "a-42.json"
        assert path.is_file()
        placement = registry.get_account_placement(42)
        assert placement.account_id == 42
        assert placement.node_id == "nA"
        assert placement.placed_at == clock()

        clock.advance(10)
        registry.set_account_placement(42, "nB")

        placement = registry.get_account_placement(42)
        assert placement.node_id == "nB"
        assert placement.placed_at == clock()
        assert json.loads(path.read_text())["node_id"] == "nB"

    def test_set_placement_does_not_check_node(self, registry):
        """Test bindings are written even for unknown nodes."""
        registry.set_account_placement(5, "not-a-node")

        assert registry.get_account_placement(5).node_id == "not-a-node"

    def test_get_missing_placement(self, registry):
        with pytest.raises(PlacementNotFound) as exc_info:
            registry.get_account_placement(99)

        assert exc_info.value.account_id == 99

    @pytest.mark.parametrize("account_id", [0, -3, True, "7"])
    def test_invalid_account_ids(self, registry, account_id):
        """Test account ids must be positive integers."""
        with pytest.raises(RegistryValidationError):
            registry.set_account_placement(account_id, "nA")

    def test_place_account(self, registry, two_web_nodes):
        """Test select-and-persist in one call."""
        placement = registry.place_account(7, "web")

        assert placement.node_id == "nA"
        assert registry.get_account_placement(7).node_id == "nA"

    def test_place_account_without_candidates(self, registry):
        """Test nothing is written when no node qualifies."""
        with pytest.raises(NoSuitableNode):
            registry.place_account(7, "mail")

        with pytest.raises(PlacementNotFound):
            registry.get_account_placement(7)

    def test_dead_node_not_selected_after_sweep(self, registry, make_node, clock):
        """Test a swept node drops out of placement."""
        registry.save_node(make_node(
            "stale", resources=make_resources(0, 0, 0),
            last_seen=clock() - timedelta(minutes=10),
        ))
        registry.save_node(make_node("fresh", resources=make_resources(60, 60, 60)))

        assert registry.get_best_node_for_placement("web").id == "stale"

        registry.mark_dead_nodes(60)

        assert registry.get_best_node_for_placement("web").id == "fresh"

    def test_list_placements(self, registry, data_dir):
        """Test every readable placement is listed."""
        registry.set_account_placement(1, "nA")
        registry.set_account_placement(2, "nB")
        (data_dir / "placements" / "a-3.json").write_text("garbage")

        placements = sorted(registry.list_placements(), key=lambda p: p.account_id)

        assert [(p.account_id, p.node_id) for p in placements] == [(1, "nA"), (2, "nB")]

    def test_placement_for_other_account_is_parse_error(self, registry, data_dir):
        """Test a binding file whose account differs from its name is rejected."""
        (data_dir / "placements" / "a-42.json").write_text(json.dumps({
            "account_id": 7, "node_id": "nA", "placed_at": "2024-01-01T00:00:00Z",
        }))

        with pytest.raises(RecordParseError):
            registry.get_account_placement(42)

        assert registry.list_placements() == []

    def test_rank_nodes_for_placement(self, registry, two_web_nodes, make_node):
        """Test the ranking leads with the node selection would pick."""
        registry.save_node(make_node("nC", roles=[NodeRole.MAIL], resources=make_resources(0, 0, 0)))

        ranked = [(node.id, score) for node, score in registry.rank_nodes_for_placement("web")]

        assert ranked == [("nA", 270), ("nB", 150)]
        assert ranked[0][0] == registry.get_best_node_for_placement("web").id

    def test_rank_nodes_for_placement_without_candidates(self, registry):
        with pytest.raises(NoSuitableNode):
            registry.rank_nodes_for_placement("web")
