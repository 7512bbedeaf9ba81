#optimizers.py
"""
Parameter update rules. An optimizer never looks the parameters up itself:
it is handed (name, parameter, gradient) triples, see DenseNetwork.gradients(), and updates the parameters in place.
"""

from typing import Dict, Iterable, Tuple

import torch

NamedGradients = Iterable[Tuple[str, torch.Tensor, torch.Tensor]]

class Optimizer:
    """Common interface: step() applies one update to every parameter it is given."""

    def __init__(self, learning_rate: float) -> None:
        if not isinstance(learning_rate, (int, float)):
            raise TypeError(f"Learning rate error: 'learning_rate' is of type {type(learning_rate)}, expected int or float.")
        if not learning_rate > 0:
            raise ValueError(f"Learning rate error: 'learning_rate' is {learning_rate}, expected a positive number.")
        self.learning_rate = float(learning_rate)

    @torch.no_grad
    def step(self, named_gradients: NamedGradients) -> None:
        for name, param, grad in named_gradients:
            if param.shape != grad.shape:
                raise ValueError(f"Gradient shape mismatch in '{name}': {tuple(grad.shape)} (gradient) vs {tuple(param.shape)} (parameter).")
            self.update(name, param, grad)

    def update(self, name: str, param: torch.Tensor, grad: torch.Tensor) -> None:
        raise NotImplementedError

    def reset(self) -> None:
        """Forget any state accumulated over previous steps."""

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}(learning_rate={self.learning_rate})'


class GradientDescent(Optimizer):
    """param <- param - learning_rate * gradient"""

    def update(self, name: str, param: torch.Tensor, grad: torch.Tensor) -> None:
        param.data.sub_(grad, alpha=self.learning_rate)


class Adam(Optimizer):
    """
    Adam with bias-corrected first and second moment estimates.
    The moments are keyed by parameter name, so they stay attached to the model being trained.
    The step count t increases once per step() call, not once per parameter.
    """
    def __init__(self, learning_rate: float = 1e-3, beta1: float = 0.9, beta2: float = 0.999, eps: float = 1e-8) -> None:
        super(Adam, self).__init__(learning_rate)
        if not 0. <= beta1 < 1. or not 0. <= beta2 < 1.:
            raise ValueError(f"Adam error: decay rates must be in [0, 1), got beta1={beta1}, beta2={beta2}.")
        self.beta1 = beta1
        self.beta2 = beta2
        self.eps = eps
        self.reset()

    def reset(self) -> None:
        self.t = 0
        self.m: Dict[str, torch.Tensor] = {}
        self.v: Dict[str, torch.Tensor] = {}

    @torch.no_grad
    def step(self, named_gradients: NamedGradients) -> None:
        self.t += 1
        super(Adam, self).step(named_gradients)

    def update(self, name: str, param: torch.Tensor, grad: torch.Tensor) -> None:
        if name not in self.m:
            self.m[name] = torch.zeros_like(param.data)
            self.v[name] = torch.zeros_like(param.data)
        m, v = self.m[name], self.v[name]
        if m.shape != param.shape:
            raise ValueError(f"Adam state mismatch in '{name}': moments have shape {tuple(m.shape)}, parameter {tuple(param.shape)}. Call reset().")

        m.mul_(self.beta1).add_(grad, alpha=1 - self.beta1)
        v.mul_(self.beta2).addcmul_(grad, grad, value=1 - self.beta2)

        m_hat = m / (1 - self.beta1 ** self.t)
        v_hat = v / (1 - self.beta2 ** self.t)
        param.data.sub_(self.learning_rate * m_hat / (v_hat.sqrt() + self.eps))

    def __repr__(self) -> str:
        return f'Adam(learning_rate={self.learning_rate}, beta1={self.beta1}, beta2={self.beta2}, eps={self.eps})'


OPTIMIZERS = {
    'sgd': GradientDescent,
    'gd': GradientDescent,
    'adam': Adam,
}

def make_optimizer(name: str, learning_rate: float) -> Optimizer:
    """Optimizer by name: 'sgd' (or 'gd') for plain gradient descent, 'adam' for Adam."""
    key = name.lower()
    if key not in OPTIMIZERS:
        raise ValueError(f"Optimizer error: '{name}' is unknown, expected one of {sorted(OPTIMIZERS)}.")
    return OPTIMIZERS[key](learning_rate)
