"""Question timing: per-question timers, session totals and the penalty ledger."""
