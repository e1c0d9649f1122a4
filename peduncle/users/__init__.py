"""
User create/delete feature.
"""
