import torch
from torch import nn
from copy import deepcopy

from errors import ShapeMismatch

"""
Parameter space helpers for comparing and copying models. Nothing here modifies its arguments.
The trainer only uses norm() for the weight norm in its history. clone, ensure_compatible, distance and equal
are for comparing models in tests and experiments, e.g. checking that a rejected step left the parameters untouched.
"""

def clone(a:nn.Module) -> nn.Module:
    """deep copy of a, parameters included"""
    return deepcopy(a)

def ensure_compatible(a:nn.Module, b:nn.Module) -> None:
    """raise ShapeMismatch unless a and b have the same parameter names and shapes"""
    a_params, b_params = list(a.named_parameters()), list(b.named_parameters())
    if len(a_params) != len(b_params):
        raise ShapeMismatch(f"Parameter count mismatch: {len(a_params)} (a) vs {len(b_params)} (b).")
    for (name, param), (other_name, other_param) in zip(a_params, b_params):
        if name != other_name:
            raise ShapeMismatch(f"Parameter name mismatch: {name} (a) vs {other_name} (b).")
        if param.data.shape != other_param.data.shape:
            raise ShapeMismatch(f"Parameter shape mismatch in '{name}': {tuple(param.data.shape)} (a) vs {tuple(other_param.data.shape)} (b).")

@torch.no_grad
def norm(a:nn.Module) -> float:
    """L2 norm of all parameters of a, as one vector"""
    return torch.norm(torch.cat([param.data.flatten().double() for param in a.parameters()])).item()

@torch.no_grad
def distance(a:nn.Module, b:nn.Module) -> float:
    """L2 distance between the parameters of a and b"""
    ensure_compatible(a, b)
    squared = sum(torch.sum((a_param.data.double() - b_param.data.double()) ** 2).item()
                  for a_param, b_param in zip(a.parameters(), b.parameters()))
    return squared ** 0.5

@torch.no_grad
def equal(a:nn.Module, b:nn.Module, tol:float=0.) -> bool:
    """
    True if every parameter of a is within tol of the one in b. tol=0 means bit-identical.
    Not an __eq__ overload, models stay hashable.
    """
    ensure_compatible(a, b)
    for a_param, b_param in zip(a.parameters(), b.parameters()):
        if tol == 0.:
            if not torch.equal(a_param, b_param):
                return False
        elif not torch.allclose(a_param, b_param, rtol=0., atol=tol):
            return False
    return True
