"""Split allocation, integrity checks and balance derivation."""
