"""Result adapters for the final diagnosis.

Implementations:
- JSON result file (the persisted artifact of a run)
- Stdout report
"""
