"""
Test suite for the object storage client.
"""
