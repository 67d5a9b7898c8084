"""Services that turn events and intents into ledger mutations."""
