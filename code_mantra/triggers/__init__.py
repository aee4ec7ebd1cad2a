"""Code Mantra — trigger sources and suppression.

Package structure
-----------------
triggers/
  ledger.py    — SuppressionLedger: per-file dedup window, saving flag,
                 line-count baseline and size-threshold marks
  timers.py    — TimerPool: self-re-arming timers for onTimer rules
  idle.py      — IdleWatcher: one reminder per idle episode
  adapters.py  — one adapter per host event kind + the shared Throttle
"""

from code_mantra.triggers.adapters import Throttle, TriggerContext
from code_mantra.triggers.idle import IdleWatcher
from code_mantra.triggers.ledger import SuppressionLedger
from code_mantra.triggers.timers import TimerPool

__all__ = [
    "IdleWatcher",
    "SuppressionLedger",
    "Throttle",
    "TimerPool",
    "TriggerContext",
]
