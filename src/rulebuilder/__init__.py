"""Rule builder: an editable AST for conditions, case expressions and value expressions."""

__version__ = "0.1.0"
