#evaluator.py
"""Batched prediction and accuracy."""

from typing import Dict

import numpy as np
import torch
import torch.nn as nn

from errors import ShapeMismatch
from loss import softmax_cross_entropy

EVAL_BATCH_SIZE = 10000

def _check_dataset(features: torch.Tensor, labels: torch.Tensor) -> None:
    if features.shape[0] == 0:
        raise ValueError("Evaluation error: the dataset is empty.")
    if features.shape[0] != labels.shape[0]:
        raise ShapeMismatch(f"Evaluation error: {features.shape[0]} feature rows but {labels.shape[0]} labels.")


@torch.no_grad
def predict(model: nn.Module, features: torch.Tensor, batch_size: int = EVAL_BATCH_SIZE) -> torch.Tensor:
    """
    Predicted class per sample: the argmax of the output probabilities.
    torch.argmax returns the first maximal index, so ties go to the lowest class.
    """
    predictions = [model(features[start:start + batch_size]).argmax(dim=1)
                   for start in range(0, features.shape[0], batch_size)]
    return torch.cat(predictions) if predictions else torch.empty(0, dtype=torch.int64)


@torch.no_grad
def accuracy(model: nn.Module, features: torch.Tensor, labels: torch.Tensor, batch_size: int = EVAL_BATCH_SIZE) -> float:
    """Fraction of samples whose predicted class equals the label. A float in [0, 1]."""
    _check_dataset(features, labels)
    correct = (predict(model, features, batch_size) == labels).sum().item()
    return correct / features.shape[0]


@torch.no_grad
def evaluate(model: nn.Module, features: torch.Tensor, labels: torch.Tensor, batch_size: int = EVAL_BATCH_SIZE) -> Dict[str, float]:
    """Mean cross-entropy and accuracy over a whole dataset."""
    _check_dataset(features, labels)
    losses, counts, correct = [], [], 0
    for start in range(0, features.shape[0], batch_size):
        x, y = features[start:start + batch_size], labels[start:start + batch_size]
        probs = model(x)
        loss, _ = softmax_cross_entropy(probs, y, probs.shape[1])
        losses.append(loss)
        counts.append(x.shape[0])
        correct += (probs.argmax(dim=1) == y).sum().item()

    # sample-weighted mean, summed in numpy for precision
    mean_loss = float(np.average(losses, weights=counts))
    return {'loss': mean_loss, 'accuracy': correct / features.shape[0]}
