"""
API Gateway Module

FastAPI application, response envelope, rate limiting dependencies and health
checks. The application lives in ``org_platform.api_gateway.main``.
"""
