#checkpoint.py
"""
Versioned container for trained parameters.
A checkpoint records the architecture (layer sizes, hidden activation), the shape of every parameter
and the raw values, plus the run configuration for reference.
"""

import json
from typing import Optional, Tuple

import torch

from dense_network import DenseNetwork
from errors import ShapeMismatch

FORMAT_VERSION = 1

def save_checkpoint(model: DenseNetwork, path: str, config: Optional[dict] = None) -> None:
    """Write the model parameters to `path`. The config is stored as JSON text, non-serialisable values as strings."""
    state = {name: param.detach().cpu().clone() for name, param in model.state_dict().items()}
    torch.save({
        'format_version': FORMAT_VERSION,
        'layer_sizes': list(model.layer_sizes),
        'hidden_activation': model.hidden_activation,
        'dtype': str(next(model.parameters()).dtype).replace('torch.', ''),
        'shapes': {name: list(tensor.shape) for name, tensor in state.items()},
        'state_dict': state,
        'config': json.dumps(config or {}, default=str),
    }, path)


def load_checkpoint(path: str) -> Tuple[DenseNetwork, dict]:
    """Rebuild the network saved at `path`. Returns (model, config)."""
    container = torch.load(path, map_location='cpu', weights_only=True)

    version = container.get('format_version')
    if version != FORMAT_VERSION:
        raise ValueError(f"Checkpoint error: format version {version} in {path}, expected {FORMAT_VERSION}.")

    state = container['state_dict']
    stored = {name: list(tensor.shape) for name, tensor in state.items()}
    if stored != container['shapes']:
        raise ShapeMismatch(f"Checkpoint error: stored tensors have shapes {stored}, recorded shapes are {container['shapes']}.")

    model = DenseNetwork(container['layer_sizes'], hidden_activation=container['hidden_activation'],
                         dtype=getattr(torch, container['dtype']))
    expected = {name: list(param.shape) for name, param in model.named_parameters()}
    if stored != expected:
        raise ShapeMismatch(f"Checkpoint error: layer sizes {container['layer_sizes']} need shapes {expected}, got {stored}.")

    model.load_state_dict(state)
    return model, json.loads(container['config'])
