"""Application package for the study tracker backend.

This package exposes the service, repository and model modules used by
the FastAPI application, plus the pure streak, recommendation and
analytics helpers under `utils`. Individual modules contain the concrete
implementations and documentation.
"""
