#batch_sampler.py
import math
from typing import Iterator, Optional, Tuple

import torch

from errors import ShapeMismatch

class BatchSampler:
    """
    Splits a dataset into minibatches for one epoch.

    Every call to iter() is a new epoch: with shuffling a fresh permutation is drawn from the generator,
    without it the samples come in dataset order. Each sample appears exactly once per epoch.
    The last batch holds the N mod B leftover samples. It is never dropped and never padded.
    """

    def __init__(
        self,
        features: torch.Tensor,
        labels: torch.Tensor,
        batch_size: int,
        shuffle: bool = True,
        generator: Optional[torch.Generator] = None,
    ) -> None:
        if not isinstance(batch_size, int) or batch_size < 1:
            raise ValueError(f"Batch size error: 'batch_size' is {batch_size}, expected a positive int.")
        if features.shape[0] != labels.shape[0]:
            raise ShapeMismatch(f"Batch error: {features.shape[0]} feature rows but {labels.shape[0]} labels.")

        self.features = features
        self.labels = labels
        self.batch_size = batch_size
        self.shuffle = shuffle
        self.generator = generator if generator is not None else torch.Generator()

    @property
    def num_samples(self) -> int:
        return self.features.shape[0]

    def __len__(self) -> int:
        return math.ceil(self.num_samples / self.batch_size)

    def order(self) -> torch.Tensor:
        """Sample indices for a new epoch."""
        if self.shuffle:
            return torch.randperm(self.num_samples, generator=self.generator)
        return torch.arange(self.num_samples)

    def __iter__(self) -> Iterator[Tuple[torch.Tensor, torch.Tensor]]:
        if not self.shuffle:
            # dataset order: slices are views, no copy
            for start in range(0, self.num_samples, self.batch_size):
                stop = start + self.batch_size
                yield self.features[start:stop], self.labels[start:stop]
            return

        order = self.order()
        for start in range(0, self.num_samples, self.batch_size):
            idx = order[start:start + self.batch_size]
            yield self.features[idx], self.labels[idx]
