"""
peduncle: a minimal user create/delete HTTP service on PostgreSQL.
"""

__version__ = "0.1.0"
