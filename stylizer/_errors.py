# -*- coding: utf-8 -*-
"""
            _errors.py

Exceptions raised by the stylization layers. All of them subclass
ValueError, which is what Keras itself raises for bad layer arguments.
"""


class InvalidPadding(ValueError):
    """
    Padding is negative, not an integer, or reaches past the edge of
    the input (reflection needs padding <= extent - 1)
    """
    pass


class ShapeError(ValueError):
    """
    A dimension needed to size weights is unknown, or a style selector
    doesn't line up with its parameter table
    """
    pass


class InvalidConfig(ValueError):
    """
    Unsupported option value or malformed serialized layer config
    """
    pass
