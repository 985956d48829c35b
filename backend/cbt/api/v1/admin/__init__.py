"""
Administrative endpoints.
"""
