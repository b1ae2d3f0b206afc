"""Ingestion helpers.

Store rows and traffic payloads are parsed into typed models here, before
anything reaches the pipeline or the published snapshots.
"""
