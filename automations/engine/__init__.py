"""Graph contract, condition evaluation and dry-run planning."""
