import psutil
from time import perf_counter
from contextlib import contextmanager
from typing import Dict, Optional

"""
Measure the wall time and RAM usage of a phase of a training run.
"""

def ram_usage() -> Dict[str, float]:
    """used and available RAM, in GB"""
    memory = psutil.virtual_memory()
    return {
        'ram used ': memory.used / 1e9,
        'ram avail': memory.available / 1e9,
    }

@contextmanager
def profiler(description: str, timings: Optional[Dict[str, float]] = None, length: int = 80, pad_char: str = ':'):
    """
    Prints a banner, the RAM usage before, the RAM difference after, and the elapsed seconds.
    If `timings` is given, the elapsed seconds are also stored in it under `description`.
    """
    print('\n' + description.center(length, pad_char))
    before = ram_usage()
    print(' | '.join(f'{k}: {v:6.1f}' for k, v in before.items()))
    start = perf_counter()
    try:
        yield
    finally:
        seconds = perf_counter() - start
        after = ram_usage()
        # the differences, with a '+' or '-' sign
        print(' | '.join(f'{k}: {after[k] - v:+6.1f}' for k, v in before.items()))
        print(f'{seconds:.2f} s for {description}'.center(length, pad_char))
        if timings is not None:
            timings[description] = seconds
