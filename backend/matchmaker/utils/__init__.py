"""
Utility package: configuration, logging and file storage helpers.
"""
