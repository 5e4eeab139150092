import os
from typing import List, Optional, Union

import numpy as np

from paravec.vocab import Vocabulary

# Data pipeline: tokenizing, subsampling (word2vec keep probability), unigram^0.75 table
# for negatives, and line-aligned byte chunks of the training file, one per worker.

UNIGRAM_TABLE_SIZE = int(1e7)


def tokenize(line: str) -> List[str]:
    """Lowercase and split on whitespace."""
    return line.lower().split()


def negative_sampling_distribution(counts: np.ndarray, power: float = 0.75) -> np.ndarray:
    """Unigram distribution raised to power and normalized (Mikolov et al.: power=0.75).

    Args:
        counts: 1D array of vocabulary counts.
        power: Exponent for counts; 0.75 is standard. Defaults to 0.75.

    Returns:
        1D array of probabilities (sum 1), same length as counts.
    """
    probs = np.power(np.maximum(np.asarray(counts, dtype=np.float64), 1e-10), power)
    probs /= probs.sum()
    return probs


class UnigramTable:
    """Fixed-size table of leaf indices; each word owns a run of slots ~ count^0.75.

    Drawing a uniform slot gives a negative sample in O(1). Read-only once built.

    Attributes:
        table (np.ndarray): int32 array of leaf indices, length table_size.
    """

    def __init__(self, vocab: Vocabulary, table_size: int = UNIGRAM_TABLE_SIZE, power: float = 0.75):
        """Fill the table walking the vocabulary in index order.

        Args:
            vocab: Pruned vocabulary (leaves 0..L-1).
            table_size: Number of slots. Defaults to UNIGRAM_TABLE_SIZE.
            power: Exponent applied to counts. Defaults to 0.75.

        Raises:
            ValueError: If the vocabulary is empty or table_size < 1.
        """
        if len(vocab) == 0:
            raise ValueError("cannot build a unigram table over an empty vocabulary")
        if table_size < 1:
            raise ValueError(f"table_size must be >= 1, got {table_size}")
        probs = negative_sampling_distribution(vocab.counts, power)
        bounds = np.cumsum(probs)
        # Slot a goes to the word whose cumulative share first passes the slot's midpoint
        positions = (np.arange(table_size, dtype=np.float64) + 0.5) / table_size
        table = np.searchsorted(bounds, positions, side="right")
        self.table = np.minimum(table, len(vocab) - 1).astype(np.int32)

    def __len__(self) -> int:
        return len(self.table)

    def sample(self, rng: np.random.Generator, size: Optional[int] = None) -> Union[int, np.ndarray]:
        """Draw leaf indices from the table.

        Args:
            rng: Generator owned by the calling worker.
            size: Number of draws; None for a single int.

        Returns:
            One index, or an int64 array of `size` indices.
        """
        slots = rng.integers(0, len(self.table), size=size)
        if size is None:
            return int(self.table[slots])
        return self.table[slots].astype(np.int64)


def keep_probability(counts, total_words: int, sample: float) -> np.ndarray:
    """Probability of keeping each word during subsampling (word2vec formula).

    P(keep) = (sqrt(c / (s*T)) + 1) * (s*T) / c, capped at 1. Words much rarer than
    the threshold are always kept; sample <= 0 disables subsampling.

    Args:
        counts: Word count(s).
        total_words: Number of in-vocabulary tokens in the corpus.
        sample: Subsampling threshold s.

    Returns:
        Array of probabilities, same shape as counts.
    """
    counts = np.asarray(counts, dtype=np.float64)
    if sample <= 0 or total_words <= 0:
        return np.ones_like(counts)
    threshold = sample * total_words
    prob = (np.sqrt(counts / threshold) + 1.0) * threshold / np.maximum(counts, 1e-12)
    return np.minimum(prob, 1.0)


def chunkify(path: str, n_chunks: int) -> List[int]:
    """Split a file into n_chunks line-aligned byte ranges of near-equal size.

    Each interior target offset i*size//n_chunks is moved forward to the start of the
    next line (unless it already is one). Chunks may be empty when the file has fewer
    lines than n_chunks; they never overlap.

    Args:
        path: Training file.
        n_chunks: Number of chunks (one per worker).

    Returns:
        n_chunks + 1 nondecreasing offsets; first is 0, last is the file size.

    Raises:
        ValueError: If n_chunks < 1.
    """
    if n_chunks < 1:
        raise ValueError(f"n_chunks must be >= 1, got {n_chunks}")
    size = os.path.getsize(path)
    chunks = [0]
    with open(path, "rb") as f:
        for i in range(1, n_chunks):
            target = max(i * size // n_chunks, chunks[-1])
            if 0 < target < size:
                f.seek(target - 1)
                if f.read(1) != b"\n":
                    f.readline()
                target = f.tell()
            chunks.append(min(target, size))
    chunks.append(size)
    return chunks


def chunk_line_starts(path: str, chunks: List[int]) -> List[int]:
    """Index of the first line of each chunk, so sentence ids stay global across workers.

    Args:
        path: Training file.
        chunks: Offsets from chunkify.

    Returns:
        List of len(chunks) - 1 line numbers.
    """
    starts = []
    line = 0
    with open(path, "rb") as f:
        for begin, end in zip(chunks[:-1], chunks[1:]):
            starts.append(line)
            f.seek(begin)
            remaining = end - begin
            while remaining > 0:
                block = f.read(min(remaining, 1 << 20))
                if not block:
                    break
                line += block.count(b"\n")
                remaining -= len(block)
    return starts
