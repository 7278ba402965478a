"""
CarePath client session subsystem.

Sign-up, sign-in and logout against Supabase Auth, local auth flag caching,
session duration tracking, verification codes and an activity audit trail.
"""

__version__ = "0.1.0"
