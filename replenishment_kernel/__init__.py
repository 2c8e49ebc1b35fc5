"""
Replenishment Kernel

Order approval and replenishment automation engine:
- Multi-role order approval state machine with append-only audit history
- Confidence- and cost-based triage of replenishment suggestions
- Deterministic vendor selection
- Recurring schedule registry with bounded execution history
"""

__version__ = "0.1.0"
