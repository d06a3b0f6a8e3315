"""
Attempt engine services
"""
