"""Aggregation and scoring pipeline.

store rows -> traffic enrichment (concurrent probes) -> scoring/merge -> ranking
"""
