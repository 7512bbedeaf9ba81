#trainer.py
"""
Trainer class
Takes   - a DenseNetwork
        - an Optimizer
        - a batch size

Runs epochs of minibatch training: for every batch, forward pass, cross-entropy loss,
closed-form backward pass, then one optimizer step over all parameters.

States: IDLE -> ITERATE_BATCHES -> EPOCH_DONE -> IDLE.
Everything is sequential. There are no retries: any error aborts the run and propagates to the caller.
A step either updates all parameters or, if it fails, none of them.
"""

from enum import Enum
from typing import List, Optional, Tuple
from warnings import warn

import numpy as np
import pandas as pd
import torch
from tqdm import tqdm

from batch_sampler import BatchSampler
from dense_network import DenseNetwork
from errors import NumericInstability, ShapeMismatch
from evaluator import accuracy
from loss import softmax_cross_entropy
from optimizers import Optimizer
from utils.param_math import norm

Dataset = Tuple[torch.Tensor, torch.Tensor]
HISTORY_COLUMNS = ['loss', 'train_accuracy', 'test_accuracy', 'weight_norm']

class TrainerState(Enum):
    IDLE = 'idle'
    ITERATE_BATCHES = 'iterate batches'
    EPOCH_DONE = 'epoch done'


class Trainer:
    """
    Attributes:
        model (DenseNetwork): The network being trained. Its parameters are updated in place.
        optimizer (Optimizer): The update rule. Its state (e.g. Adam moments) persists across epochs.
        batch_size (int): Samples per batch. The last batch of an epoch may be smaller.
        shuffle (bool): Draw a new permutation of the training set every epoch.
        generator (torch.Generator): Source of the shuffling permutations, seeded with `seed`.
        progress (bool): Show a tqdm progress bar over the batches and print one line per epoch.
        state (TrainerState): Where in the epoch loop the trainer is.
        epoch (int): Number of completed epochs.
        steps (int): Number of completed optimizer steps.
        history (pd.DataFrame): One row per completed epoch of fit().
    """
    def __init__(
        self,
        model: DenseNetwork,
        optimizer: Optimizer,
        batch_size: int,
        shuffle: bool = True,
        seed: Optional[int] = None,
        progress: bool = True,
    ) -> None:
        if not isinstance(model, DenseNetwork):
            raise TypeError(f"Model error: 'model' is of type {type(model)}, expected DenseNetwork.")
        if not isinstance(optimizer, Optimizer):
            raise TypeError(f"Optimizer error: 'optimizer' is of type {type(optimizer)}, expected Optimizer.")
        if not isinstance(batch_size, int) or batch_size < 1:
            raise ValueError(f"Batch size error: 'batch_size' is {batch_size}, expected a positive int.")

        self.model = model
        self.optimizer = optimizer
        self.batch_size = batch_size
        self.shuffle = shuffle
        self.progress = progress

        self.generator = torch.Generator()
        if seed is None:
            self.generator.seed()
        else:
            self.generator.manual_seed(seed)

        self.state = TrainerState.IDLE
        self.epoch = 0
        self.steps = 0
        self.records: List[dict] = []

    @property
    def history(self) -> pd.DataFrame:
        """One row per completed epoch of fit(), indexed by epoch number."""
        history = pd.DataFrame(self.records, columns=['epoch', *HISTORY_COLUMNS], dtype='float64')
        history['epoch'] = history['epoch'].astype(int)
        return history.set_index('epoch')

    def _check_inputs(self, features: torch.Tensor, labels: torch.Tensor) -> None:
        if features.dim() != 2 or features.shape[1] != self.model.input_size:
            raise ShapeMismatch(f"Training error: expected features of shape (N, {self.model.input_size}), got {tuple(features.shape)}.")
        if labels.shape != (features.shape[0],):
            raise ShapeMismatch(f"Training error: expected labels of shape ({features.shape[0]},), got {tuple(labels.shape)}.")
        if features.shape[0] == 0:
            raise ValueError("Training error: the training set is empty.")

    @staticmethod
    def _instability(message: str) -> NumericInstability:
        warn(message, RuntimeWarning)
        return NumericInstability(message)

    @torch.no_grad
    def train_step(self, features: torch.Tensor, labels: torch.Tensor) -> float:
        """
        One forward/backward/update cycle on a batch. Returns the batch loss.
        The loss and all gradients are checked before the first parameter is touched.
        """
        self._check_inputs(features, labels)

        probs = self.model(features)
        loss, grad_logits = softmax_cross_entropy(probs, labels, self.model.num_classes)
        if not np.isfinite(loss):
            raise self._instability(f"Loss became {loss} at step {self.steps + 1}. Is the learning rate ({self.optimizer.learning_rate}) too high?")

        self.model.backward(grad_logits)
        named_gradients = list(self.model.gradients())
        for name, _, grad in named_gradients:
            if not torch.isfinite(grad).all():
                raise self._instability(f"Gradient of '{name}' is not finite at step {self.steps + 1}.")

        self.optimizer.step(named_gradients)
        self.steps += 1
        return loss

    def train_epoch(self, features: torch.Tensor, labels: torch.Tensor) -> float:
        """One pass over the training set. Returns the sample-weighted mean of the batch losses."""
        self._check_inputs(features, labels)
        sampler = BatchSampler(features, labels, self.batch_size, shuffle=self.shuffle, generator=self.generator)

        self.state = TrainerState.ITERATE_BATCHES
        losses: List[float] = []
        counts: List[int] = []
        try:
            batches = tqdm(sampler, desc=f'Epoch {self.epoch + 1}', leave=False, disable=not self.progress)
            for batch_features, batch_labels in batches:
                losses.append(self.train_step(batch_features, batch_labels))
                counts.append(batch_labels.shape[0])
                batches.set_postfix(loss=f'{losses[-1]:.4f}')
        except BaseException:
            self.state = TrainerState.IDLE
            raise

        self.state = TrainerState.EPOCH_DONE
        self.epoch += 1
        # summing in numpy, in double precision
        return float(np.average(np.asarray(losses, dtype=np.float64), weights=counts))

    def fit(self, train: Dataset, epochs: int, test: Optional[Dataset] = None) -> pd.DataFrame:
        """
        Train for `epochs` epochs. After each epoch, record the mean training loss,
        the train accuracy, the test accuracy (if a test set is given) and the parameter norm.
        Returns the accumulated history.
        """
        if not isinstance(epochs, int) or epochs < 0:
            raise ValueError(f"Epochs error: 'epochs' is {epochs}, expected a non-negative int.")
        train_features, train_labels = train

        for _ in range(epochs):
            loss = self.train_epoch(train_features, train_labels)
            record = {
                'epoch': self.epoch,
                'loss': loss,
                'train_accuracy': accuracy(self.model, train_features, train_labels),
                'test_accuracy': accuracy(self.model, *test) if test is not None else np.nan,
                'weight_norm': norm(self.model),
            }
            self.records.append(record)

            if self.progress:
                line = f"Epoch {self.epoch:4d} - Loss: {loss:.4f}, Train Accuracy: {record['train_accuracy']:.4f}"
                if test is not None:
                    line += f", Test Accuracy: {record['test_accuracy']:.4f}"
                tqdm.write(line)
            self.state = TrainerState.IDLE

        return self.history
