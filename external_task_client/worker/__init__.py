"""
Worker process bootstrap.
"""
