__title__ = "oauthstream"
__description__ = "Long-lived streaming HTTP client with OAuth 1.0a request signing."
__version__ = "0.1.0"
