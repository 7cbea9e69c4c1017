# -*- coding: utf-8 -*-
"""Exception hierarchy shared by all flowstates modules."""


class FlowStatesError(RuntimeError):
    pass


class InvalidInputError(FlowStatesError, ValueError):
    """Empty training data, wrong dimensionality or malformed input."""


class NotFittedError(FlowStatesError):
    """A read operation was called on a model or scaler before fit()."""
