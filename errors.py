#errors.py
"""
Error taxonomy of the trainer.
All of these are fatal for a training run: they propagate straight to the caller, nothing is retried.
They derive from built-in exceptions, so `except ValueError` style handling keeps working.
"""

class ShapeMismatch(ValueError):
    """Feature, label or parameter dimensions are inconsistent with the model architecture."""


class InvalidShape(ShapeMismatch):
    """Raw images are not a uniform stack of 2D grids."""


class LabelRangeError(ValueError):
    """A label lies outside [0, num_classes - 1]. The data is considered corrupt."""


class NumericInstability(ArithmeticError):
    """
    The loss or a gradient became NaN or Inf.
    Usually a learning rate that is too high. Raised before any parameter is updated.
    """
