# conftest.py
import pytest
import torch

def _make_blobs(n_per_class=40, num_features=20, num_classes=3, seed=0, noise=0.05, dtype=torch.float32):
    """Well separated clusters in [0, 1]^num_features, one per class. Labels come sorted by class."""
    g = torch.Generator().manual_seed(seed)
    centers = torch.rand((num_classes, num_features), generator=g, dtype=torch.float64)
    labels = torch.arange(num_classes).repeat_interleave(n_per_class)
    features = centers[labels] + noise * torch.randn((len(labels), num_features), generator=g, dtype=torch.float64)
    return features.clamp(0., 1.).to(dtype), labels

@pytest.fixture(scope="session")
def make_blobs():
    return _make_blobs

@pytest.fixture
def blobs():
    # 120 samples, 20 features, 3 classes
    return _make_blobs()
