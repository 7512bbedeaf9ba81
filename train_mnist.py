#train_mnist.py
"""
Train a dense network on MNIST and report loss and accuracy.

    python train_mnist.py                                   # 784 -> 10, gradient descent
    python train_mnist.py --hidden-units 32 --optimizer adam --learning-rate 0.001
"""

import argparse
from typing import Dict, List, Optional

import torch

from checkpoint import save_checkpoint
from dense_network import build_network
from evaluator import evaluate
from mnist_source import load_mnist
from optimizers import make_optimizer
from trainer import Trainer
from utils.profiler import profiler

# default config for a run, every entry can be overridden from the command line
cfg = {
    'hidden_units': 0,          # 0 = single layer 784 -> 10, otherwise 784 -> hidden (ReLU) -> 10
    'optimizer': 'sgd',         # 'sgd' or 'adam'
    'learning_rate': 0.1,       # 0.1 suits gradient descent, Adam wants ~0.001
    'batch_size': 100,          # 60000 = full-batch steps
    'epochs': 5,
    'shuffle': True,            # new permutation of the training set every epoch
    'seed': 0,                  # seeds both the weight init and the shuffling
    'precision': torch.float32, # float32 or float64
    'data_dir': './data',
    'save': None,               # path of a checkpoint to write after training
    'progress': True,
}

def parse_args(argv: Optional[List[str]] = None) -> Dict:
    parser = argparse.ArgumentParser(description='Train a dense network on MNIST')
    parser.add_argument('--hidden-units', type=int, default=cfg['hidden_units'],
                        help='units in the hidden ReLU layer, 0 for a single-layer model')
    parser.add_argument('--optimizer', choices=['sgd', 'adam'], default=cfg['optimizer'])
    parser.add_argument('--learning-rate', type=float, default=cfg['learning_rate'])
    parser.add_argument('--batch-size', type=int, default=cfg['batch_size'])
    parser.add_argument('--epochs', type=int, default=cfg['epochs'])
    parser.add_argument('--seed', type=int, default=cfg['seed'])
    parser.add_argument('--double', action='store_true', help='train in float64')
    parser.add_argument('--data-dir', default=cfg['data_dir'])
    parser.add_argument('--save', default=cfg['save'], metavar='PATH', help='write a checkpoint after training')
    parser.add_argument('--no-shuffle', action='store_true', help='iterate the training set in dataset order')
    parser.add_argument('--no-progress', action='store_true', help='no progress bars or per-epoch lines')
    args = parser.parse_args(argv)

    return {
        **cfg,
        'hidden_units': args.hidden_units,
        'optimizer': args.optimizer,
        'learning_rate': args.learning_rate,
        'batch_size': args.batch_size,
        'epochs': args.epochs,
        'seed': args.seed,
        'precision': torch.float64 if args.double else cfg['precision'],
        'data_dir': args.data_dir,
        'save': args.save,
        'shuffle': not args.no_shuffle,
        'progress': not args.no_progress,
    }


def run(c: Dict) -> Dict[str, float]:
    """Load the data, train, evaluate. Returns the final train/test loss and accuracy."""
    timings = {}

    with profiler('Loading MNIST', timings):
        data = load_mnist(c['data_dir'], dtype=c['precision'])

    model = build_network(input_size=data['train'][0].shape[1], hidden_units=c['hidden_units'],
                          seed=c['seed'], dtype=c['precision'])
    optimizer = make_optimizer(c['optimizer'], c['learning_rate'])
    print(f'Training {model.layer_sizes} ({model.num_parameters():,} parameters) with {optimizer}')

    trainer = Trainer(model, optimizer, c['batch_size'], shuffle=c['shuffle'], seed=c['seed'], progress=c['progress'])

    with profiler(f"Training for {c['epochs']} epochs", timings):
        trainer.fit(data['train'], c['epochs'], test=data['test'])

    with profiler('Evaluating', timings):
        train_metrics = evaluate(model, *data['train'])
        test_metrics = evaluate(model, *data['test'])

    results = {
        'train_loss': train_metrics['loss'],
        'train_accuracy': train_metrics['accuracy'],
        'test_loss': test_metrics['loss'],
        'test_accuracy': test_metrics['accuracy'],
    }
    print(f"Train Accuracy: {results['train_accuracy']:.4f}, Test Accuracy: {results['test_accuracy']:.4f}")

    if c['save']:
        save_checkpoint(model, c['save'], config={**c, 'results': results, 'timings': timings})
        print(f"Checkpoint saved to {c['save']}")

    return results


def main(argv: Optional[List[str]] = None) -> Dict[str, float]:
    return run(parse_args(argv))


if __name__ == '__main__':
    main()
