"""HTTP surface of the memory pipeline."""
