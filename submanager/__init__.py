"""
Subscription Manager - Source Package

A personal subscription tracker: OTP sign-in against a REST backend,
subscription records kept in sync with the server, and derived views of
monthly spend.

DESIGN PRINCIPLES:
1. Validate locally before touching the network
2. The server is authoritative - last successful response wins
3. Session data never outlives the session
4. Every step is auditable
5. Collaborators are injected, never global
"""

__version__ = "1.0.0"
__author__ = "Subscription Manager Team"
