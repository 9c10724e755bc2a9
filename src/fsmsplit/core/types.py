"""Core data types for fsmsplit.

These types model an animation-style controller: a set of parameters shared
by one or more layers, each layer owning a state machine of states and
transitions. States and transitions are mutable and compared by identity,
so they can be collected in sets while the machine is edited in place.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ParameterType(Enum):
    """Value type of a controller parameter."""

    FLOAT = "float"
    INT = "int"
    BOOL = "bool"
    TRIGGER = "trigger"


class ConditionMode(Enum):
    """Comparison applied by a transition condition."""

    IF = "if"
    IF_NOT = "if_not"
    GREATER = "greater"
    LESS = "less"
    EQUALS = "equals"
    NOT_EQUAL = "not_equal"


class InterruptionSource(Enum):
    """Which transitions may interrupt a running transition."""

    NONE = "none"
    SOURCE = "source"
    DESTINATION = "destination"
    SOURCE_THEN_DESTINATION = "source_then_destination"
    DESTINATION_THEN_SOURCE = "destination_then_source"


class BlendingMode(Enum):
    """How a layer blends with the layers above it."""

    OVERRIDE = "override"
    ADDITIVE = "additive"


@dataclass(frozen=True)
class Parameter:
    """A controller-scoped parameter.

    Attributes:
        name: Parameter name, referenced by conditions.
        type: The parameter value type.
    """

    name: str
    type: ParameterType


@dataclass(frozen=True)
class Condition:
    """A condition gating a transition.

    Attributes:
        mode: The comparison mode.
        threshold: Value compared against for numeric modes.
        parameter: Name of the parameter the condition reads.
    """

    mode: ConditionMode
    threshold: float
    parameter: str


@dataclass
class Behaviour:
    """A behaviour descriptor attached to a state.

    Attributes:
        type_name: The behaviour type. Clones are re-created from this alone.
        properties: Instance state of this particular behaviour.
    """

    type_name: str
    properties: dict[str, Any] = field(default_factory=dict)


@dataclass(eq=False)
class Transition:
    """A directed transition to a destination state.

    Concrete transitions live in their source state's ``transitions`` list.
    Any-state transitions live in ``StateMachine.any_state_transitions``.
    """

    destination: "State | None" = None
    name: str = ""
    has_exit_time: bool = False
    exit_time: float = 0.75
    has_fixed_duration: bool = True
    duration: float = 0.25
    offset: float = 0.0
    interruption_source: InterruptionSource = InterruptionSource.NONE
    ordered_interruption: bool = True
    conditions: list[Condition] = field(default_factory=list)

    def add_condition(self, mode: ConditionMode, threshold: float, parameter: str) -> Condition:
        """Append a condition and return it."""
        condition = Condition(mode=mode, threshold=threshold, parameter=parameter)
        self.conditions.append(condition)
        return condition

    def __repr__(self) -> str:
        target = self.destination.name if self.destination is not None else None
        return f"Transition(name={self.name!r}, destination={target!r})"


@dataclass(eq=False)
class State:
    """A single state in a state machine.

    Attributes:
        name: Unique name within the owning state machine; used as the
            identity key when states are copied between machines.
        motion: Opaque motion/content reference, shared (never copied).
        behaviours: Ordered behaviour descriptors.
        transitions: Outgoing concrete transitions.
    """

    name: str
    tag: str = ""
    motion: Any = None
    speed: float = 1.0
    speed_parameter_active: bool = False
    speed_parameter: str = ""
    time_parameter_active: bool = False
    time_parameter: str = ""
    mirror: bool = False
    mirror_parameter_active: bool = False
    mirror_parameter: str = ""
    cycle_offset: float = 0.0
    cycle_offset_parameter_active: bool = False
    cycle_offset_parameter: str = ""
    ik_on_feet: bool = False
    write_default_values: bool = True
    behaviours: list[Behaviour] = field(default_factory=list)
    transitions: list[Transition] = field(default_factory=list)

    def add_transition(self, destination: "State | None") -> Transition:
        """Create an outgoing transition to ``destination``."""
        transition = Transition(destination=destination)
        self.transitions.append(transition)
        return transition

    def add_behaviour(self, type_name: str) -> Behaviour:
        """Attach a fresh, default-valued behaviour of the given type."""
        behaviour = Behaviour(type_name=type_name)
        self.behaviours.append(behaviour)
        return behaviour

    def __repr__(self) -> str:
        return f"State(name={self.name!r})"


@dataclass
class StateMachine:
    """The state graph of one layer.

    Attributes:
        states: Mapping of state name to state.
        any_state_transitions: Transitions whose origin is any state.
        default_state: The initial state. When set, always a member of
            ``states``.
    """

    states: dict[str, State] = field(default_factory=dict)
    any_state_transitions: list[Transition] = field(default_factory=list)
    default_state: State | None = None

    def add_state(self, name: str) -> State:
        """Create and register a new state.

        Raises:
            ValueError: If a state with this name already exists.
        """
        if name in self.states:
            raise ValueError(f"State '{name}' already exists")
        state = State(name=name)
        self.states[name] = state
        return state

    def get_state(self, name: str) -> State | None:
        return self.states.get(name)

    def remove_state(self, state: State) -> None:
        """Remove a state and every transition that points at it."""
        if self.states.get(state.name) is not state:
            return
        del self.states[state.name]

        self.any_state_transitions = [
            t for t in self.any_state_transitions if t.destination is not state
        ]
        for other in self.states.values():
            other.transitions = [t for t in other.transitions if t.destination is not state]

        if self.default_state is state:
            self.default_state = None

    def add_any_state_transition(self, destination: State) -> Transition:
        """Create a transition from any state to ``destination``."""
        transition = Transition(destination=destination)
        self.any_state_transitions.append(transition)
        return transition


@dataclass
class Layer:
    """A controller layer with its own state machine.

    Attributes:
        synced_layer_index: Index of the layer this one mirrors, -1 if none.
        avatar_mask: Opaque mask reference, shared (never copied).
    """

    name: str
    default_weight: float = 1.0
    avatar_mask: Any = None
    blending_mode: BlendingMode = BlendingMode.OVERRIDE
    ik_pass: bool = False
    synced_layer_index: int = -1
    synced_layer_affects_timing: bool = False
    state_machine: StateMachine = field(default_factory=StateMachine)


@dataclass
class Controller:
    """A controller: parameters shared by an ordered list of layers."""

    name: str
    parameters: list[Parameter] = field(default_factory=list)
    layers: list[Layer] = field(default_factory=list)

    def add_parameter(self, name: str, type: ParameterType) -> Parameter:
        parameter = Parameter(name=name, type=type)
        self.parameters.append(parameter)
        return parameter

    def has_parameter(self, name: str) -> bool:
        return any(p.name == name for p in self.parameters)

    def add_layer(self, name: str) -> Layer:
        layer = Layer(name=name)
        self.layers.append(layer)
        return layer

    def get_layer(self, name: str) -> Layer | None:
        """Return the first layer with the given name, or None."""
        for layer in self.layers:
            if layer.name == name:
                return layer
        return None
