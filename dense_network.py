#dense_network.py
"""
Module for a small feed-forward classifier for MNIST.
Layers are nn.Modules so the parameters live in the model and can be copied, saved and compared like any torch model.
There is no autograd here: every layer computes its gradients in closed form in backward().
Parameters are created with requires_grad=False and are only ever changed in place by an optimizer.
"""

import math
from typing import Callable, Dict, Iterator, Optional, Sequence, Tuple

import torch
import torch.nn as nn

from errors import ShapeMismatch

def identity(x: torch.Tensor) -> torch.Tensor:
    return x

def identity_derivative(x: torch.Tensor) -> torch.Tensor:
    return torch.ones_like(x)

def relu(x: torch.Tensor) -> torch.Tensor:
    return x.clamp_min(0)

def relu_derivative(x: torch.Tensor) -> torch.Tensor:
    # the subgradient at 0 is taken to be 0
    return (x > 0).to(x.dtype)

def softmax(logits: torch.Tensor) -> torch.Tensor:
    """Row-wise softmax. The row maximum is subtracted before exponentiating, so large logits don't overflow."""
    shifted = logits - logits.max(dim=1, keepdim=True).values
    exp = torch.exp(shifted)
    return exp / exp.sum(dim=1, keepdim=True)

# activation name -> (function, derivative w.r.t. the pre-activation)
ACTIVATIONS: Dict[str, Tuple[Callable, Callable]] = {
    'identity': (identity, identity_derivative),
    'relu': (relu, relu_derivative),
}


class DenseLayer(nn.Module):
    """
    output = activation(x @ weight + bias)
    weight: (in_features, out_features), bias: (out_features,)
    Samples are rows throughout.
    """
    def __init__(
        self,
        in_features: int,
        out_features: int,
        activation: str = 'identity',
        generator: Optional[torch.Generator] = None,
        dtype: torch.dtype = torch.float32,
    ) -> None:
        super(DenseLayer, self).__init__()
        if activation not in ACTIVATIONS:
            raise ValueError(f"Activation error: '{activation}' is unknown, expected one of {list(ACTIVATIONS)}.")
        if in_features < 1 or out_features < 1:
            raise ValueError(f"Layer error: sizes must be positive, got {in_features} -> {out_features}.")

        self.in_features = in_features
        self.out_features = out_features
        self.activation = activation
        self._act, self._act_derivative = ACTIVATIONS[activation]

        # He-uniform weights for ReLU layers, Glorot-uniform otherwise, zero biases
        if activation == 'relu':
            limit = math.sqrt(6. / in_features)
        else:
            limit = math.sqrt(6. / (in_features + out_features))
        weight = (torch.rand((in_features, out_features), generator=generator, dtype=dtype) * 2. - 1.) * limit
        self.weight = nn.Parameter(weight, requires_grad=False)
        self.bias = nn.Parameter(torch.zeros(out_features, dtype=dtype), requires_grad=False)

        # filled by forward() and backward()
        self.input = None
        self.pre_activation = None
        self.grads: Dict[str, torch.Tensor] = {}

    def extra_repr(self) -> str:
        return f'in_features={self.in_features}, out_features={self.out_features}, activation={self.activation}'

    @torch.no_grad
    def forward(self, x: torch.Tensor) -> torch.Tensor:
        if x.dim() != 2 or x.shape[1] != self.in_features:
            raise ShapeMismatch(f"Layer error: expected input of shape (batch, {self.in_features}), got {tuple(x.shape)}.")
        x = x.to(self.weight.dtype)
        self.input = x
        self.pre_activation = x @ self.weight + self.bias
        return self._act(self.pre_activation)

    @torch.no_grad
    def backward(self, grad_output: torch.Tensor) -> torch.Tensor:
        """
        Takes dL/d(output), stores dL/d(weight) and dL/d(bias) in self.grads and returns dL/d(input).
        Must follow a forward() on the same batch.
        """
        if self.input is None:
            raise RuntimeError("Layer error: backward() called before forward().")
        if grad_output.shape != self.pre_activation.shape:
            raise ShapeMismatch(f"Layer error: gradient has shape {tuple(grad_output.shape)}, expected {tuple(self.pre_activation.shape)}.")

        grad_pre = grad_output * self._act_derivative(self.pre_activation)
        self.grads = {
            'weight': self.input.T @ grad_pre,
            'bias': grad_pre.sum(dim=0),
        }
        return grad_pre @ self.weight.T


class DenseNetwork(nn.Module):
    """
    A stack of DenseLayers. Hidden layers use `hidden_activation`, the last layer is affine and is followed by softmax.
    layer_sizes = [784, 10] is a single layer, [784, 32, 10] has one hidden layer of 32 units.

    model(x) returns class probabilities. Each row sums to 1.
    backward() expects the gradient w.r.t. the logits, which is what the fused cross-entropy gradient provides.
    """
    def __init__(
        self,
        layer_sizes: Sequence[int],
        hidden_activation: str = 'relu',
        seed: Optional[int] = None,
        dtype: torch.dtype = torch.float32,
    ) -> None:
        super(DenseNetwork, self).__init__()
        if len(layer_sizes) < 2:
            raise ValueError(f"Network error: need at least input and output sizes, got {list(layer_sizes)}.")

        self.layer_sizes = [int(size) for size in layer_sizes]
        self.hidden_activation = hidden_activation

        generator = torch.Generator()
        if seed is None:
            generator.seed()
        else:
            generator.manual_seed(seed)

        pairs = list(zip(self.layer_sizes[:-1], self.layer_sizes[1:]))
        self.layers = nn.ModuleList([
            DenseLayer(n_in, n_out,
                       activation=hidden_activation if i < len(pairs) - 1 else 'identity',
                       generator=generator, dtype=dtype)
            for i, (n_in, n_out) in enumerate(pairs)
        ])

    @property
    def input_size(self) -> int:
        return self.layer_sizes[0]

    @property
    def num_classes(self) -> int:
        return self.layer_sizes[-1]

    @torch.no_grad
    def logits(self, x: torch.Tensor) -> torch.Tensor:
        for layer in self.layers:
            x = layer(x)
        return x

    @torch.no_grad
    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return softmax(self.logits(x))

    @torch.no_grad
    def backward(self, grad_logits: torch.Tensor) -> torch.Tensor:
        """Backpropagate dL/d(logits) through all layers. Returns dL/d(input)."""
        grad = grad_logits
        for layer in reversed(self.layers):
            grad = layer.backward(grad)
        return grad

    def gradients(self) -> Iterator[Tuple[str, nn.Parameter, torch.Tensor]]:
        """
        (name, parameter, gradient) for every parameter, as computed by the last backward().
        This is the only view of the model an optimizer gets.
        """
        for i, layer in enumerate(self.layers):
            if not layer.grads:
                raise RuntimeError(f"Network error: layer {i} has no gradients. Call backward() first.")
            for name, param in layer.named_parameters():
                yield f'layers.{i}.{name}', param, layer.grads[name]

    def num_parameters(self) -> int:
        return sum(param.numel() for param in self.parameters())


def build_network(
    input_size: int = 784,
    hidden_units: int = 0,
    num_classes: int = 10,
    seed: Optional[int] = None,
    dtype: torch.dtype = torch.float32,
) -> DenseNetwork:
    """hidden_units == 0 gives a single affine layer plus softmax, otherwise one hidden ReLU layer."""
    if hidden_units < 0:
        raise ValueError(f"Network error: 'hidden_units' is {hidden_units}, expected >= 0.")
    sizes = [input_size, num_classes] if hidden_units == 0 else [input_size, hidden_units, num_classes]
    return DenseNetwork(sizes, hidden_activation='relu', seed=seed, dtype=dtype)
