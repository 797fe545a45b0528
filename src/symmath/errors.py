class InvalidStateError(ValueError):
    """Raised when the folded value of a non-constant expression is read."""


class UnboundVariableError(KeyError):
    """Raised when an expression is evaluated without a value for one of its symbols."""

    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"No value given for variable '{self.name}'"
