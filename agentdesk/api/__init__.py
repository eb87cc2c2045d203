"""
AgentDesk – REST API
====================
FastAPI application, dependency wiring and error handling.
"""
