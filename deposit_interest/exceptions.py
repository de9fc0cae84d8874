"""
Error Taxonomy

Domain errors raised by the rate history and compounding engine. All of them
are ValueErrors so callers that only guard against bad input keep working.
"""


class MalformedFeed(ValueError):
    """Raised when a rate feed yields no usable rows"""


class InvalidRange(ValueError):
    """Raised in strict mode when end date is not after start date"""


class EmptyHistory(ValueError):
    """Raised when the engine is handed a rate history with no events"""
