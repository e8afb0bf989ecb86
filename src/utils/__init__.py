"""
Generic utility functions shared across modules.

Includes time/clock abstractions, BLS period-to-date conversion, logging
setup, and error classes.
"""
