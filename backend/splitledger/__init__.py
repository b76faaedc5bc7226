"""SplitLedger balance ledger backend."""
