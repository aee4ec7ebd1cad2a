"""Code Mantra — reminder trigger engine for editor activity.

Code Mantra watches a stream of editor and workspace events and decides, for
each one, whether a user-configured reminder should be shown.  The hard part
is arbitration: several trigger sources can fire for the same file at once,
timers must re-arm without drifting, idle detection must ignore bursts of
activity, and a save must not cascade into a second "edit" reminder.

Layers (bottom to top):
    1. Scheduling — cancelable delayed callbacks on one event queue
    2. Rules      — rule validation, glob matching, random selection
    3. Triggers   — suppression ledger, timer pool, idle watcher, adapters
    4. Daemon     — owns the managers and wires host events to adapters
    5. CLI        — event-log replay and rule validation
"""

__version__ = "0.1.0"
__author__ = "Code Mantra Contributors"
__license__ = "Apache-2.0"

from code_mantra.daemon import MantraDaemon

__all__ = [
    "__version__",
    "MantraDaemon",
]
