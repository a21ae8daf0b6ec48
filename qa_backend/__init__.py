"""
Backend package for the Islamic Q&A service.

This package provides a FastAPI application with a database abstraction,
caller identity verification and the question/user operations the web
front-end calls.
"""
