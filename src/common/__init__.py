"""
Common building blocks shared by the classifier and the wallpaper rotator.

This package contains reusable, domain-agnostic code:

- configuration loading (environment variables)
- the error taxonomy
- a Google Drive API client and access-token handling
- persistent preferences
- retry/backoff and image decoding helpers
- logging configuration
"""
