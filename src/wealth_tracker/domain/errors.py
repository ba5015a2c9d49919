class InvalidRuleError(ValueError):
    """Raised when a category rule has an empty or non-compiling pattern."""
    pass
