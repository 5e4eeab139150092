import logging
from dataclasses import asdict, dataclass
from typing import Optional

# Hyperparameters, fixed before training. Defaults follow the classic word2vec CLI.

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Config:
    """Immutable training configuration.

    Attributes:
        dimension (int): Size of word and sentence vectors.
        window_size (int): Maximum half-window; the effective window is drawn in [1, window_size].
        min_count (int): Words seen fewer times are pruned from the vocabulary.
        alpha (float): Starting learning rate.
        iterations (int): Number of passes over the corpus.
        threads (int): Number of worker threads (one file chunk each).
        subsampling (float): Threshold for down-sampling frequent words; 0 disables it.
        hierarchical_softmax (bool): Train the Huffman-tree output layer.
        skip_gram (bool): Skip-gram instead of CBOW.
        negative (int): Noise words per positive example; 0 disables negative sampling.
        sent_vector (bool): Learn one vector per corpus line (paragraph vectors).
        freeze (bool): During sentence inference, only adapt the new sentence row.
        verbose (bool): Log progress while training.
        seed (Optional[int]): Seed for weight init and worker generators; None for fresh entropy.
    """

    dimension: int = 100
    window_size: int = 5
    min_count: int = 5
    alpha: float = 0.05
    iterations: int = 5
    threads: int = 4
    subsampling: float = 1e-3
    hierarchical_softmax: bool = False
    skip_gram: bool = False
    negative: int = 5
    sent_vector: bool = False
    freeze: bool = False
    verbose: bool = False
    seed: Optional[int] = None

    def __post_init__(self):
        for name in ("dimension", "window_size", "iterations", "threads"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1, got {getattr(self, name)}")
        for name in ("min_count", "negative"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0, got {getattr(self, name)}")
        if self.subsampling < 0:
            raise ValueError(f"subsampling must be >= 0, got {self.subsampling}")
        if self.alpha <= 0:
            raise ValueError(f"alpha must be > 0, got {self.alpha}")
        if not self.hierarchical_softmax and self.negative == 0:
            raise ValueError("enable hierarchical softmax or set negative > 0")

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, values: dict) -> "Config":
        """Build a Config from a dict, ignoring unknown keys (e.g. from an older archive)."""
        known = {k: v for k, v in values.items() if k in cls.__dataclass_fields__}
        return cls(**known)

    def log_summary(self) -> None:
        for key, value in self.to_dict().items():
            logger.info("%-20s %s", key, value)
