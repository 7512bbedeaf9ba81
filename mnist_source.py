#mnist_source.py
"""
Data source: MNIST as decoded by torchvision.
Decoding the IDX files is torchvision's job. This module only hands out the raw arrays per split,
and the encoded (flattened, validated) datasets the trainer consumes.
"""

from typing import Dict, Tuple

import torch
from torchvision.datasets import MNIST

from feature_encoder import encode_dataset

SPLITS = ('train', 'test')

def load_split(split: str, root: str = './data', download: bool = True) -> Tuple[torch.Tensor, torch.Tensor]:
    """
    Raw images (uint8, shape (N, 28, 28)) and integer labels (int64, shape (N,)) of one split.
    60000 samples for 'train', 10000 for 'test'.
    """
    if split not in SPLITS:
        raise ValueError(f"Split error: '{split}' is unknown, expected one of {SPLITS}.")
    dataset = MNIST(root=root, train=(split == 'train'), download=download)
    return dataset.data, dataset.targets.to(torch.int64)


def load_mnist(root: str = './data', download: bool = True,
               dtype: torch.dtype = torch.float32) -> Dict[str, Tuple[torch.Tensor, torch.Tensor]]:
    """Both splits, encoded: {'train': (features, labels), 'test': (features, labels)}."""
    return {split: encode_dataset(*load_split(split, root, download), dtype=dtype) for split in SPLITS}
