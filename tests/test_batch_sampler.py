# test_batch_sampler.py
import pytest
import torch
from batch_sampler import BatchSampler
from errors import ShapeMismatch

def indexed_dataset(n):
    """features hold the sample index, so batches can be traced back to samples"""
    features = torch.arange(n, dtype=torch.float32).unsqueeze(1).repeat(1, 3)
    labels = torch.arange(n) % 10
    return features, labels

@pytest.mark.parametrize("n, batch_size", [(100, 10), (103, 10), (7, 32), (60, 60)])
def test_epoch_covers_every_sample_once(n, batch_size):
    features, labels = indexed_dataset(n)
    sampler = BatchSampler(features, labels, batch_size, shuffle=True, generator=torch.Generator().manual_seed(0))

    seen = torch.cat([batch_features[:, 0] for batch_features, _ in sampler]).long()

    assert len(seen) == n, f"Epoch yielded {len(seen)} samples, expected {n}."
    assert torch.equal(seen.sort().values, torch.arange(n)), "Some samples are missing or duplicated."

def test_rows_stay_aligned():
    features, labels = indexed_dataset(50)
    for batch_features, batch_labels in BatchSampler(features, labels, 8, generator=torch.Generator().manual_seed(1)):
        assert torch.equal(batch_features[:, 0].long() % 10, batch_labels), "Features and labels got out of step."

def test_short_last_batch():
    features, labels = indexed_dataset(103)
    sampler = BatchSampler(features, labels, 10, shuffle=False)
    sizes = [len(batch_labels) for _, batch_labels in sampler]

    assert len(sampler) == 11, f"Expected 11 batches, got {len(sampler)}"
    assert sizes == [10] * 10 + [3], f"Last batch should hold the 3 leftover samples, got sizes {sizes}"

def test_deterministic_order_without_shuffle():
    features, labels = indexed_dataset(25)
    sampler = BatchSampler(features, labels, 10, shuffle=False)
    for _ in range(2):
        order = torch.cat([batch_features[:, 0] for batch_features, _ in sampler]).long()
        assert torch.equal(order, torch.arange(25)), "Without shuffling, samples should come in dataset order."

def test_new_permutation_every_epoch():
    features, labels = indexed_dataset(100)
    sampler = BatchSampler(features, labels, 100, shuffle=True, generator=torch.Generator().manual_seed(0))
    first = next(iter(sampler))[0][:, 0]
    second = next(iter(sampler))[0][:, 0]
    assert not torch.equal(first, second), "Two epochs produced the same permutation."

def test_same_seed_same_order():
    features, labels = indexed_dataset(100)
    a = BatchSampler(features, labels, 30, generator=torch.Generator().manual_seed(42))
    b = BatchSampler(features, labels, 30, generator=torch.Generator().manual_seed(42))
    for (a_features, _), (b_features, _) in zip(a, b):
        assert torch.equal(a_features, b_features), "Equal seeds should give equal batch orders."

def test_invalid_arguments():
    features, labels = indexed_dataset(10)
    with pytest.raises(ValueError):
        BatchSampler(features, labels, 0)
    with pytest.raises(ValueError):
        BatchSampler(features, labels, 2.5)
    with pytest.raises(ShapeMismatch):
        BatchSampler(features, labels[:9], 2)
