"""
Event abstractions and the detection/throttling/batching pipeline.

- schema: closed set of candidate event dataclasses and throttle classes.
- action_states: Melee action-state ids and transition classification.
- tracker: MatchStateTracker, frame snapshots -> candidate events.
- admission: AdmissionController, per-match per-class throttling.
- batcher: EventBatcher, per-match FIFO queues drained in batches.
"""

from .schema import (  # noqa: F401
    ActionState,
    ActionSubtype,
    CandidateEvent,
    Combo,
    EventClass,
    EventType,
    FrameHeartbeat,
    MatchEnd,
    MatchStart,
    RosterEntry,
    StockLost,
    event_class,
)
