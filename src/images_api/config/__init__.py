"""
Configuration management for the Images API.

Contains the Pydantic settings object passed explicitly to the app, the
upload intake and the image store.
"""
