# Services module

from queskip.services.queue_ledger import (
    ConflictError,
    FullError,
    InactiveError,
    InvalidStateError,
    NotFoundError,
    QueueEntry,
    QueueLedger,
    QueueLedgerError,
    QueueStats,
    TransientStoreError,
    WaitEstimate,
)
