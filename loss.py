#loss.py
"""
Cross-entropy between predicted class probabilities and one-hot targets.
The gradient is the fused softmax + cross-entropy form, taken with respect to the logits.
"""

from typing import Tuple

import torch

from errors import ShapeMismatch
from feature_encoder import NUM_CLASSES, one_hot

EPS = 1e-10

def _check_shapes(probs: torch.Tensor, targets: torch.Tensor) -> None:
    if probs.shape != targets.shape:
        raise ShapeMismatch(f"Loss error: probabilities have shape {tuple(probs.shape)}, targets {tuple(targets.shape)}.")
    if probs.dim() != 2 or probs.shape[0] == 0:
        raise ShapeMismatch(f"Loss error: expected a non-empty (batch, classes) matrix, got {tuple(probs.shape)}.")


@torch.no_grad
def cross_entropy(probs: torch.Tensor, targets: torch.Tensor, eps: float = EPS) -> float:
    """
    -mean over samples of sum over classes of Y * log(P).
    P is clamped to eps from below, so a zero probability costs -log(eps) instead of Inf.
    Computed in double precision.
    """
    _check_shapes(probs, targets)
    log_probs = torch.log(probs.double().clamp_min(eps))
    return -(targets.double() * log_probs).sum(dim=1).mean().item()


@torch.no_grad
def cross_entropy_grad(probs: torch.Tensor, targets: torch.Tensor) -> torch.Tensor:
    """Gradient of the mean cross-entropy with respect to the pre-softmax logits: (P - Y) / batch_size."""
    _check_shapes(probs, targets)
    return (probs - targets.to(probs.dtype)) / probs.shape[0]


@torch.no_grad
def softmax_cross_entropy(probs: torch.Tensor, labels: torch.Tensor,
                          num_classes: int = NUM_CLASSES) -> Tuple[float, torch.Tensor]:
    """Loss and logit gradient for integer labels. The one-hot targets only live inside this call."""
    targets = one_hot(labels, num_classes, dtype=probs.dtype)
    return cross_entropy(probs, targets), cross_entropy_grad(probs, targets)
