"""Concrete runtime: graph engine, NumPy backend, functions and optimizers."""
