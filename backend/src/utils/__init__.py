"""
Utility modules for the clinic scheduling backend.

This package contains shared helpers used across the application: clinic
timezone and datetime parsing utilities, and appointment query filters.
"""
