"""Application package for the ExamHub backend.

This package exposes the service, repository and model modules used by
the FastAPI application (users, roles, institutes, exams, exam
assignments and results behind bearer-token authentication). It is
intentionally lightweight; individual modules contain the concrete
implementations and documentation.
"""
