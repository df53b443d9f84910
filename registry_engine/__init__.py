"""
Territory Risk Registry Engine — risk classification and aggregation.

Classifies free-text occurrence-probability labels into risk tiers using the
current probability codelist, and folds territory assessments into the
histograms, rollups, rankings and totals shown on the dashboard and in exports.
"""

__version__ = "1.0.0"
