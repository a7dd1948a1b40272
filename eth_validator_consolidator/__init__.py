"""EIP-7251 validator consolidation helpers."""
