from __future__ import annotations


class ModelFormatError(ValueError):
    """The model file exists but cannot be read as a model archive."""


class ModelSchemaError(ValueError):
    """Data supplied to a model does not match the shape the model expects."""
