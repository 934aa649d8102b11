class CalcError(Exception):
    """Base class for every error raised while processing a line."""


class LexIssue(CalcError):
    """An unrecognized character. Recorded by the tokenizer, never raised by it."""

    def __init__(self, char: str, position: int):
        super().__init__(f"Unrecognized character '{char}' at position {position}")
        self.char = char
        self.position = position


class ParseError(CalcError):
    def __init__(self, message: str, position: int | None = None):
        super().__init__(message)
        self.position = position


class EvalError(CalcError):
    pass


class UnitMismatch(EvalError):
    pass


class UnknownIdentifier(EvalError):
    def __init__(self, message: str, name: str | None = None):
        super().__init__(message)
        self.name = name


class UnknownUnit(UnknownIdentifier):
    pass


class UnresolvedCellReference(EvalError):
    def __init__(self, message: str, label: str | None = None):
        super().__init__(message)
        self.label = label


class CircularCellReference(UnresolvedCellReference):
    pass


class DivisionByZero(EvalError):
    pass
