"""Avenir shared libraries.

This package contains reusable components:
- common: settings
- caching: Redis client and the evidence cache
- firebase / firestore: Firebase bootstrap and company/document access
- models: Firestore document models
"""
