"""
Auth module: one strategy interface, two variants.
"""

from osapi.auth.base import AuthStrategy
from osapi.auth.s3 import S3Signer
from osapi.auth.swift import SwiftTokenClient

__all__ = [
    "AuthStrategy",
    "S3Signer",
    "SwiftTokenClient",
]
