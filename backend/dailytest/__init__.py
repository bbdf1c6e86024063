"""
Daily test platform backend.
"""
