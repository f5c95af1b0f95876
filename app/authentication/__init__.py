"""
User directory for the chat service: email-keyed accounts, the Profile
shown beside every message, registration and user search.
"""
