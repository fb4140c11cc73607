"""
Calendar Domain

Google Calendar OAuth connection for speakers: encrypted token storage,
access token refresh with retry, and event create/delete.
"""
