"""Core domain package for launchwatch.

Core contains normalization, qualification and identity logic without any
HTTP, Telegram or storage-specific code, keeping the business logic portable.
"""
