"""Authentication.

Users log in with email/password and receive a bearer JWT carrying their
public projection. The same token admits dashboard websocket sessions.
"""
