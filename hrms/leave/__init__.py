"""Leave requests and the leave-balance ledger."""
