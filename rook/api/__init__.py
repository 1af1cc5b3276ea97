"""
API routers package.

WHY: One router module per resource family keeps route handlers thin and
lets main.py mount them under a single prefix.
"""
