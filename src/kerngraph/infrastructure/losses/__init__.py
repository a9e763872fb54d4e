from ._losses import BinaryCrossEntropy, MeanSquaredError

__all__ = ["BinaryCrossEntropy", "MeanSquaredError"]
