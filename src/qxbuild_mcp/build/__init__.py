"""Build orchestration for qx.build builders.

Provides watch-mode compiler builds with:
- Per-builder state machine (stopped / watching)
- Debounced rebuilds on source changes
- Process tree kill before every rebuild
- Registry reconciling builders when qx.build files change
"""

from .context import BuildContext, Notification, OutputLog
from .orchestrator import BuildOrchestrator, compose_command
from .process import kill_process_tree
from .registry import BuilderRegistry
from .state import BuildEventType, BuilderState, LifecycleEvent, OutputEvent
from .watcher import PollingWatcher, watch

__all__ = [
    "BuildContext",
    "BuildEventType",
    "BuilderRegistry",
    "BuilderState",
    "BuildOrchestrator",
    "LifecycleEvent",
    "Notification",
    "OutputEvent",
    "OutputLog",
    "PollingWatcher",
    "compose_command",
    "kill_process_tree",
    "watch",
]
