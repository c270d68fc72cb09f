"""Multi-model hospitalization forecast viewer."""
