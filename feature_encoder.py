#feature_encoder.py
"""
Turns raw images and integer labels into what the network consumes.
    - Images: stack of 2D grids -> row-major flat vectors, scaled to [0, 1].
    - Labels: integers stay the canonical representation. One-hot matrices are derived on demand.
"""

from typing import Sequence, Tuple, Union

import numpy as np
import torch

from errors import InvalidShape, LabelRangeError, ShapeMismatch

NUM_CLASSES = 10
MAX_INTENSITY = 255.

ImageStack = Union[torch.Tensor, np.ndarray, Sequence]


def _as_image_tensor(images: ImageStack) -> torch.Tensor:
    """Stack the images into a single (N, H, W) tensor, checking that every grid has the same dimensions."""
    if isinstance(images, torch.Tensor):
        return images
    if isinstance(images, np.ndarray):
        return torch.from_numpy(images)

    grids = [torch.as_tensor(np.asarray(image)) for image in images]
    if not grids:
        raise InvalidShape("Image error: got an empty sequence of images.")
    first_shape = grids[0].shape
    for i, grid in enumerate(grids):
        if grid.dim() != 2:
            raise InvalidShape(f"Image error: image {i} has shape {tuple(grid.shape)}, expected a 2D grid.")
        if grid.shape != first_shape:
            raise InvalidShape(f"Image error: image {i} has shape {tuple(grid.shape)}, expected {tuple(first_shape)} like image 0.")
    return torch.stack(grids)


def flatten_images(images: ImageStack, dtype: torch.dtype = torch.float32) -> torch.Tensor:
    """
    Flatten a stack of images of shape (N, H, W) into feature vectors of shape (N, H*W), row-major.
    Integer images, or float images with values above 1, are assumed to be 0..255 and are divided by 255.
    Raises ValueError if any intensity ends up outside [0, 1].
    """
    images = _as_image_tensor(images)
    if images.dim() != 3:
        raise InvalidShape(f"Image error: expected a stack of 2D grids with shape (N, H, W), got {tuple(images.shape)}.")

    scale = not torch.is_floating_point(images) or (images.numel() > 0 and images.max().item() > 1.)
    features = images.reshape(images.shape[0], -1).to(dtype)
    if scale:
        features = features / MAX_INTENSITY

    if features.numel() > 0:
        low, high = features.min().item(), features.max().item()
        if low < 0. or high > 1.:
            raise ValueError(f"Image error: intensities must lie in [0, 1] after scaling, got values in [{low}, {high}].")
    return features


def validate_labels(labels, num_classes: int = NUM_CLASSES) -> torch.Tensor:
    """Return the labels as a flat int64 tensor. Raises LabelRangeError if any label is outside [0, num_classes - 1]."""
    labels = torch.as_tensor(labels)
    if torch.is_floating_point(labels):
        if not torch.equal(labels, labels.round()):
            raise LabelRangeError("Label error: labels must be integers.")
    labels = labels.reshape(-1).to(torch.int64)

    if labels.numel() > 0:
        low, high = labels.min().item(), labels.max().item()
        if low < 0 or high >= num_classes:
            bad = labels[(labels < 0) | (labels >= num_classes)][0].item()
            raise LabelRangeError(f"Label error: label {bad} is outside [0, {num_classes - 1}].")
    return labels


def one_hot(labels, num_classes: int = NUM_CLASSES, dtype: torch.dtype = torch.float32) -> torch.Tensor:
    """Fresh (N, num_classes) one-hot matrix. Never a view of the labels."""
    labels = validate_labels(labels, num_classes)
    encoded = torch.zeros((labels.shape[0], num_classes), dtype=dtype)
    encoded[torch.arange(labels.shape[0]), labels] = 1.
    return encoded


def from_one_hot(encoded: torch.Tensor) -> torch.Tensor:
    """Integer labels from a one-hot (or probability) matrix, via argmax."""
    if encoded.dim() != 2:
        raise ShapeMismatch(f"One-hot error: expected a 2D matrix, got shape {tuple(encoded.shape)}.")
    return encoded.argmax(dim=1)


def encode_dataset(images: ImageStack, labels, num_classes: int = NUM_CLASSES,
                   dtype: torch.dtype = torch.float32) -> Tuple[torch.Tensor, torch.Tensor]:
    """Flatten the images and validate the labels of a whole split."""
    features = flatten_images(images, dtype=dtype)
    labels = validate_labels(labels, num_classes)
    if features.shape[0] != labels.shape[0]:
        raise ShapeMismatch(f"Dataset error: {features.shape[0]} images but {labels.shape[0]} labels.")
    return features, labels
