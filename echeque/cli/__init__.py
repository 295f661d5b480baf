"""Command-line tools for the e-cheque ledger."""
