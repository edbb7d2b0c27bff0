"""Application package for the Student Management API.

This package exposes the service, repository and model modules used by
the FastAPI application, and the connection manager that keeps the
MongoDB client alive. Individual modules contain the concrete
implementations and documentation.
"""
