"""Command relay engine.

Public API:
- RelayLoop: Reads invocations and dispatches them concurrently
- SessionManager: Connect / register / stream state machine
- InvocationExecutor: Runs the wrapped command for one invocation
- OutputBatcher: Count-or-time batching of command output
- segment: Chat text to command arguments
"""

from redshirt.relay.batcher import LineSource, OutputBatcher, WaitOutcome
from redshirt.relay.executor import ENV_GROUPS, ENV_NICKNAME, InvocationExecutor
from redshirt.relay.loop import RelayLoop
from redshirt.relay.segmenter import segment
from redshirt.relay.session import BrokerClient, SessionManager, SessionState

__all__ = [
    "BrokerClient",
    "ENV_GROUPS",
    "ENV_NICKNAME",
    "InvocationExecutor",
    "LineSource",
    "OutputBatcher",
    "RelayLoop",
    "SessionManager",
    "SessionState",
    "WaitOutcome",
    "segment",
]
