"""Unit tests for viz.ascii module.

Tests state machine conversion to NetworkX and ASCII rendering.
"""

from fsmsplit.core.constants import ANY_STATE_NAME, LARGE_GRAPH_THRESHOLD
from fsmsplit.core.types import Controller, Layer, StateMachine


class TestVizModuleStructure:
    """Test viz module exists and exports correctly."""

    def test_render_ascii_exported(self) -> None:
        """Verify render_ascii is exported from viz module."""
        from fsmsplit.viz import render_ascii

        assert callable(render_ascii)

    def test_state_machine_to_networkx_exported(self) -> None:
        from fsmsplit.viz import state_machine_to_networkx

        assert callable(state_machine_to_networkx)


class TestStateMachineToNetworkX:
    """Test StateMachine-to-NetworkX conversion."""

    def test_states_and_transitions(self, base_layer: Layer) -> None:
        """Four states plus the any-state node; three edges plus the any-state entry."""
        from fsmsplit.viz import state_machine_to_networkx

        nx_graph = state_machine_to_networkx(base_layer.state_machine)

        assert len(nx_graph.nodes) == 5, f"Expected 5 nodes, got {list(nx_graph.nodes)}"
        assert len(nx_graph.edges) == 4, f"Expected 4 edges, got {list(nx_graph.edges)}"

    def test_default_state_is_bracketed(self, base_layer: Layer) -> None:
        from fsmsplit.viz import state_machine_to_networkx

        nx_graph = state_machine_to_networkx(base_layer.state_machine)

        assert "[Idle]" in nx_graph.nodes
        assert "Walk" in nx_graph.nodes

    def test_any_state_node_links_to_destination(self, base_layer: Layer) -> None:
        from fsmsplit.viz.ascii import ANY_STATE_LABEL, state_machine_to_networkx

        nx_graph = state_machine_to_networkx(base_layer.state_machine)

        assert nx_graph.has_edge(ANY_STATE_LABEL, "[Idle]")
        assert nx_graph.nodes[ANY_STATE_LABEL]["name"] == ANY_STATE_NAME
        assert nx_graph.edges[ANY_STATE_LABEL, "[Idle]"]["label"] == "Enter if 0"

    def test_highlighted_states_are_marked(self, base_layer: Layer) -> None:
        from fsmsplit.viz import state_machine_to_networkx

        nx_graph = state_machine_to_networkx(base_layer.state_machine, {"Walk", "Idle"})

        assert ">> Walk" in nx_graph.nodes
        assert ">> [Idle]" in nx_graph.nodes
        assert "Run" in nx_graph.nodes

    def test_no_any_state_node_without_any_state_transitions(
        self, locomotion: Controller
    ) -> None:
        from fsmsplit.viz.ascii import ANY_STATE_LABEL, state_machine_to_networkx

        nx_graph = state_machine_to_networkx(locomotion.layers[1].state_machine)

        assert ANY_STATE_LABEL not in nx_graph.nodes
        assert len(nx_graph.nodes) == 2


class TestRenderAscii:
    """Test ASCII rendering."""

    def test_empty_machine_message(self) -> None:
        from fsmsplit.viz import render_ascii

        assert render_ascii(StateMachine()) == "No states in this layer."

    def test_render_contains_states_and_transition_listing(self, base_layer: Layer) -> None:
        from fsmsplit.viz import render_ascii

        output = render_ascii(base_layer.state_machine)

        assert "Walk" in output
        assert "Attack" in output
        assert "Transitions:" in output
        assert "Idle --Speed greater 0.1--> Walk" in output
        assert "(Any State) --Enter if 0--> Idle" in output

    def test_exit_time_transition_without_conditions(self, locomotion: Controller) -> None:
        from fsmsplit.viz import render_ascii

        output = render_ascii(locomotion.layers[1].state_machine)

        assert "Open --exit--> Closed" in output

    def test_states_without_transitions_have_no_listing(self) -> None:
        from fsmsplit.viz import render_ascii

        machine = StateMachine()
        machine.add_state("Alone")

        output = render_ascii(machine)

        assert "Alone" in output
        assert "Transitions:" not in output

    def test_large_machine_warns_once(self) -> None:
        from fsmsplit.viz import render_ascii

        machine = StateMachine()
        for index in range(LARGE_GRAPH_THRESHOLD + 1):
            machine.add_state(f"S{index}")

        output = render_ascii(machine)

        assert output.count("Large state machine") == 1
        assert f"({LARGE_GRAPH_THRESHOLD + 1} states)" in output

    def test_machine_at_threshold_does_not_warn(self) -> None:
        from fsmsplit.viz import render_ascii

        machine = StateMachine()
        for index in range(LARGE_GRAPH_THRESHOLD):
            machine.add_state(f"S{index}")

        assert "Large state machine" not in render_ascii(machine)
