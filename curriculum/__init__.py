"""Batch curriculum generation: a two-phase topic queue with review gates."""
