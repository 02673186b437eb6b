"""Application package for the student roster service.

This package exposes the store adapter, service and model modules used
by the FastAPI application. Individual modules contain the concrete
implementations and documentation.
"""
