"""
Observation Insights

Analytics engine for teacher observation feedback: grade distributions,
per-dimension aggregation, trend analysis, rule-based insights and report
assembly over observation records fetched from the school's data store.
"""

__version__ = "0.1.0"
