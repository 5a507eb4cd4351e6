"""Errors raised by the scheduling core for malformed input."""


class MalformedInputError(ValueError):
    """Input the core cannot reason about: bad recurrence, dangling trait, wrong week."""
