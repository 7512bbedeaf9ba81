# test_optimizers.py
import pytest
import torch
from optimizers import Optimizer, GradientDescent, Adam, make_optimizer
from dense_network import build_network
from utils.param_math import clone, equal

def zero_gradients(model):
    return [(name, param, torch.zeros_like(param)) for name, param in model.named_parameters()]

def random_gradients(model, seed):
    g = torch.Generator().manual_seed(seed)
    return [(name, param, torch.randn(param.shape, generator=g, dtype=param.dtype)) for name, param in model.named_parameters()]

@pytest.mark.parametrize("optimizer", [GradientDescent(0.1), Adam(0.001)])
def test_zero_gradient_leaves_parameters_unchanged(optimizer):
    model = build_network(hidden_units=16, seed=0)
    before = clone(model)
    for _ in range(3):
        optimizer.step(zero_gradients(model))
    assert equal(model, before), f"{optimizer} changed the parameters with a zero gradient."

def test_gradient_descent_step():
    param = torch.tensor([1., -2., 3.])
    grad = torch.tensor([0.5, 0.5, -1.])
    GradientDescent(0.1).step([('p', param, grad)])
    assert torch.allclose(param, torch.tensor([0.95, -2.05, 3.1])), f"Unexpected update: {param}"

def test_adam_first_step_is_learning_rate_times_sign():
    # after one step m_hat = g and v_hat = g^2, so the update is lr * g / (|g| + eps)
    param = torch.zeros(4, dtype=torch.float64)
    grad = torch.tensor([3., -0.2, 1e-3, -50.], dtype=torch.float64)
    Adam(0.01).step([('p', param, grad)])
    assert torch.allclose(param, -0.01 * torch.sign(grad), atol=1e-7), f"Unexpected first Adam step: {param}"

def test_adam_matches_torch():
    model = build_network(hidden_units=5, input_size=12, num_classes=3, seed=0, dtype=torch.float64)
    reference = [param.detach().clone().requires_grad_(True) for param in model.parameters()]
    ours = Adam(0.01)
    theirs = torch.optim.Adam(reference, lr=0.01, betas=(0.9, 0.999), eps=1e-8)

    for step in range(10):
        grads = random_gradients(model, seed=step)
        ours.step(grads)
        for ref_param, (_, _, grad) in zip(reference, grads):
            ref_param.grad = grad.clone()
        theirs.step()

    assert ours.t == 10, f"Step count should be 10, got {ours.t}"
    for param, ref_param in zip(model.parameters(), reference):
        assert torch.allclose(param, ref_param.detach(), atol=1e-12), "Adam update differs from torch.optim.Adam."

def test_adam_state_is_kept_per_parameter():
    model = build_network(hidden_units=4, input_size=6, num_classes=2, seed=0)
    adam = Adam()
    adam.step(random_gradients(model, seed=0))

    assert adam.t == 1, "The step count should increase once per step, not once per parameter."
    assert set(adam.m) == {name for name, _ in model.named_parameters()}
    for name, param in model.named_parameters():
        assert adam.m[name].shape == param.shape and adam.v[name].shape == param.shape

    adam.reset()
    assert adam.t == 0 and not adam.m and not adam.v, "reset() should discard the moments."

def test_step_shape_mismatch():
    with pytest.raises(ValueError):
        GradientDescent(0.1).step([('p', torch.zeros(3), torch.zeros(4))])

def test_make_optimizer():
    assert isinstance(make_optimizer('sgd', 0.1), GradientDescent)
    assert isinstance(make_optimizer('GD', 0.1), GradientDescent)
    adam = make_optimizer('adam', 0.001)
    assert isinstance(adam, Adam) and isinstance(adam, Optimizer)
    assert (adam.beta1, adam.beta2, adam.eps) == (0.9, 0.999, 1e-8), "Adam should use the standard defaults."
    assert adam.learning_rate == 0.001

    with pytest.raises(ValueError):
        make_optimizer('rmsprop', 0.1)
    with pytest.raises(ValueError):
        make_optimizer('sgd', 0.)
    with pytest.raises(TypeError):
        make_optimizer('sgd', '0.1')
    with pytest.raises(ValueError):
        Adam(0.001, beta1=1.)
