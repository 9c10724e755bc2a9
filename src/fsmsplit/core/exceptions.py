"""Custom exceptions for fsmsplit.

All fsmsplit-specific exceptions inherit from FsmSplitError.
"""


class FsmSplitError(Exception):
    """Base exception for fsmsplit errors."""

    pass


class CloneError(FsmSplitError):
    """Error while copying states into a target controller.

    A clone that raised is incomplete and must not be persisted.
    """

    pass


class InputConsistencyError(CloneError):
    """The source controller contradicts the classification that selected it.

    Raised when a root state was classified by its any-state transition
    but no such transition exists in the layer being copied.
    """

    pass


class DanglingTransitionError(CloneError):
    """A copied state has a transition leaving the copied subset.

    Only raised under the "fail" dangling-transition policy.
    """

    pass


class MissingElementError(FsmSplitError):
    """A required controller element (layer, parameter) is absent."""

    pass


class OverlappingGroupsError(FsmSplitError):
    """Two extraction groups reach the same state.

    Raised before any cloning happens so no state is extracted twice.
    """

    pass


class SelectionError(FsmSplitError):
    """An authoring session was given an unusable selection."""

    pass


class PersistenceError(FsmSplitError):
    """Error during controller persistence operations.

    Raised when loading or saving a controller document fails
    due to I/O errors or corrupted data.
    """

    pass


class ConfigError(FsmSplitError):
    """Error during configuration loading.

    Raised when the config file has invalid TOML syntax
    or cannot be parsed correctly.
    """

    pass
