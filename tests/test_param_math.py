# test_param_math.py
import pytest
import torch
from dense_network import build_network
from utils.param_math import clone, ensure_compatible, norm, distance, equal
from errors import ShapeMismatch

def test_equality():
    A = build_network(hidden_units=8, seed=0)
    B = build_network(hidden_units=8, seed=1)

    # Differently seeded models should not be equal
    assert not equal(A, B), "Models with different initial parameters are considered equal."
    assert not equal(B, A), "Models with different initial parameters are considered equal."

    # A model should always be equal to itself
    assert equal(A, A), "Model is not equal to itself."

    # Cloning and verifying equality
    C = clone(A)
    assert equal(A, C), "Cloned model is not considered equal to the original."

    # Modifying the clone and verifying inequality
    C.layers[0].weight.data[0, 0] += 1e-3
    assert not equal(A, C), "Model is considered equal to its modified clone."
    assert equal(A, C, tol=1e-2), "Models within tolerance should be considered equal."
    assert not equal(A, C, tol=1e-4)

def test_clone_is_independent():
    A = build_network(hidden_units=8, seed=0)
    C = clone(A)
    C.layers[1].bias.data.fill_(5.)
    assert torch.all(A.layers[1].bias == 0), "Modifying the clone changed the original."

def test_norm_and_distance():
    A = build_network(input_size=6, hidden_units=3, num_classes=2, seed=0)
    expected = torch.cat([param.flatten().double() for param in A.parameters()]).norm().item()
    assert pytest.approx(norm(A)) == expected

    B = clone(A)
    assert distance(A, B) == 0.
    B.layers[0].weight.data[0, 0] += 3.
    B.layers[1].bias.data[1] -= 4.
    assert pytest.approx(distance(A, B)) == 5.

def test_triangle_inequality():
    A = build_network(hidden_units=8, seed=0)
    B = build_network(hidden_units=8, seed=1)
    C = build_network(hidden_units=8, seed=2)
    assert distance(A, C) <= distance(A, B) + distance(B, C), "Triangle inequality does not hold."

def test_error_handling_incompatible_models():
    A = build_network(hidden_units=8, seed=0)
    with pytest.raises(ShapeMismatch):
        ensure_compatible(A, build_network(hidden_units=9, seed=0))
    with pytest.raises(ShapeMismatch):
        equal(A, build_network(hidden_units=0, seed=0))
    with pytest.raises(ShapeMismatch):
        distance(A, build_network(hidden_units=8, num_classes=5, seed=0))
