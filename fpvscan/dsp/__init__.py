"""Power reduction and spectrum helpers for IQ sample batches."""
