"""Constants for fsmsplit.

Exit codes, reserved names, and default values.
"""

from typing import Final

# Exit codes (following Unix conventions)
EXIT_SUCCESS: Final[int] = 0
EXIT_USER_ERROR: Final[int] = 1
EXIT_INTERNAL_ERROR: Final[int] = 2
EXIT_CONFIG_ERROR: Final[int] = 3
# At least one group was aborted while others were extracted
EXIT_PARTIAL_SPLIT: Final[int] = 4

# Reserved destination name for the virtual any-state origin. Never a real state.
ANY_STATE_NAME: Final[str] = "Any State"

# Layer names
BASE_LAYER_NAME: Final[str] = "Base Layer"
CARRY_LAYER_NAME: Final[str] = "EyeBlink"

# Output naming: {controller} is the source name, {index} the group position
DEFAULT_NAME_TEMPLATE: Final[str] = "{controller}{index}"
DEFAULT_OUTPUT_DIR: Final[str] = "split"
CONTROLLER_SUFFIX: Final[str] = ".json"

# Dangling transition policies
DANGLING_DROP: Final[str] = "drop"
DANGLING_FAIL: Final[str] = "fail"
DANGLING_POLICIES: frozenset[str] = frozenset({DANGLING_DROP, DANGLING_FAIL})

# Default root rules: any-state entry on EnterState, then the Team prefix
DEFAULT_ENTER_PARAMETER: Final[str] = "EnterState"
DEFAULT_TEAM_PREFIX: Final[str] = "Team"

# Batch timing rewrite values
REWRITE_EXIT_TIME: Final[float] = 1.1
REWRITE_DURATION: Final[float] = 1.2
REWRITE_OFFSET: Final[float] = 1.3

# Trigger parameters added by the trigger session, consumed in order
DEFAULT_TRIGGERS: Final[tuple[str, ...]] = ("aTriggerParameter", "bTriggerParameter")

# Controller document schema
DOCUMENT_VERSION: Final[str] = "1.0"

# Warn when a rendered layer exceeds this many states
LARGE_GRAPH_THRESHOLD: Final[int] = 50
