"""Credit ledger: event recording, aggregation and reconciliation."""
