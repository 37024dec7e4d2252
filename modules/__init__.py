"""
Feature modules for Portcullis.

Each module is self-contained with its own:
- interfaces.py: Protocol definitions for the module's public API
- models.py: Pydantic models for data transfer
- exceptions.py: Module-specific exceptions
- one or more implementation modules

Modules communicate through interfaces, not concrete implementations.
"""
