from typing import Iterable, Iterator, List, Optional

import numpy as np

from paravec.config import Config
from paravec.data import UNIGRAM_TABLE_SIZE, UnigramTable, keep_probability, tokenize
from paravec.vocab import HuffmanNode, Vocabulary, build_vocab

# Word2vec / paragraph-vector model: shared float32 matrices and the per-word SGD steps
# (CBOW or skip-gram, hierarchical softmax and/or negative sampling). Workers call these
# concurrently without locks; racing updates on the same rows are accepted (Hogwild-style).

MAX_EXP = 6.0
MIN_ALPHA_RATIO = 1e-4
# Rounds of redrawing noise samples that collide with the target
MAX_REDRAWS = 10


def sigmoid(x):
    """Logistic function on (-MAX_EXP, MAX_EXP).

    Args:
        x: Scalar or array.

    Returns:
        Float for scalar input, array otherwise.

    Raises:
        ValueError: If any |x| >= MAX_EXP or x is NaN; such a score means training diverged.
    """
    x = np.asarray(x, dtype=np.float64)
    if not np.all(np.abs(x) < MAX_EXP):
        raise ValueError(f"sigmoid argument out of range (-{MAX_EXP}, {MAX_EXP}): {x}")
    y = 1.0 / (1.0 + np.exp(-x))
    return float(y) if y.ndim == 0 else y


def decayed_alpha(starting_alpha: float, words_processed: int, total_words: int) -> float:
    """Linear decay from starting_alpha towards 0, floored at starting_alpha * 1e-4.

    Args:
        starting_alpha: Learning rate at the start of the run.
        words_processed: Words trained so far, over all workers and epochs.
        total_words: Words the whole run will train (iterations * corpus words).

    Returns:
        Current learning rate.
    """
    ratio = 1.0 - words_processed / (total_words + 1)
    return starting_alpha * max(ratio, MIN_ALPHA_RATIO)


class ParaVecModel:
    """Word vectors (and optional sentence vectors) trained word2vec-style.

    Attributes:
        config (Config): Hyperparameters.
        vocab (Optional[Vocabulary]): Pruned vocabulary with its Huffman tree.
        unigram (Optional[UnigramTable]): Negative-sampling table (None without negatives).
        input_weights (np.ndarray): Word embeddings, shape (L, D).
        output_weights (np.ndarray): Negative-sampling output rows, shape (L, D).
        output_weights_hs (np.ndarray): Hierarchical-softmax rows per internal node, shape (I, D).
        sent_weights (np.ndarray): One row per training line, shape (lines, D).
        online_sent_weights (np.ndarray): Rows inferred for unseen sentences.
        training_words (int): In-vocabulary tokens in the training file.
        training_lines (int): Lines in the training file.
        words_processed (int): Shared progress counter, bumped by every worker.
        alpha (float): Shared current learning rate.
    """

    def __init__(self, config: Optional[Config] = None):
        self.config = config or Config()
        self.vocab: Optional[Vocabulary] = None
        self.unigram: Optional[UnigramTable] = None
        dim = self.config.dimension
        self.input_weights = np.zeros((0, dim), dtype=np.float32)
        self.output_weights = np.zeros((0, dim), dtype=np.float32)
        self.output_weights_hs = np.zeros((0, dim), dtype=np.float32)
        self.sent_weights = np.zeros((0, dim), dtype=np.float32)
        self.online_sent_weights = np.zeros((0, dim), dtype=np.float32)
        self.training_words = 0
        self.training_lines = 0
        self.words_processed = 0
        self.alpha = self.config.alpha
        self._rng = np.random.default_rng(self.config.seed)

    def _check_vocab(self) -> Vocabulary:
        if self.vocab is None:
            raise RuntimeError("model has no vocabulary; train or load it first")
        return self.vocab

    def _random_rows(self, rng: np.random.Generator, n_rows: int) -> np.ndarray:
        dim = self.config.dimension
        return ((rng.random((n_rows, dim)) - 0.5) / dim).astype(np.float32)

    def build_vocab(self, training_file: str, table_size: int = UNIGRAM_TABLE_SIZE) -> None:
        """Read the corpus, prune and encode the vocabulary, build the unigram table."""
        self.vocab = build_vocab(training_file, self.config.min_count)
        self.training_words = self.vocab.total_words
        self.training_lines = self.vocab.total_lines
        self.unigram = UnigramTable(self.vocab, table_size) if self.config.negative > 0 else None

    def init_net(self) -> None:
        """Allocate the word matrices: small uniform input rows, zero output rows."""
        vocab = self._check_vocab()
        rng = np.random.default_rng(self.config.seed)
        dim = self.config.dimension
        self.input_weights = self._random_rows(rng, len(vocab))
        if self.config.negative > 0:
            self.output_weights = np.zeros((len(vocab), dim), dtype=np.float32)
        if self.config.hierarchical_softmax:
            self.output_weights_hs = np.zeros((vocab.n_internal, dim), dtype=np.float32)

    def init_sent_weights(self) -> None:
        """One random row per training line."""
        rng = np.random.default_rng(None if self.config.seed is None else self.config.seed + 1)
        self.sent_weights = self._random_rows(rng, self.training_lines)

    def get_nodes(self, sentence: str) -> List[HuffmanNode]:
        """Tokenize a line into vocabulary nodes; unknown words become UNK."""
        vocab = self._check_vocab()
        return [vocab.get(word) for word in tokenize(sentence)]

    def subsample(self, nodes: List[HuffmanNode], rng: np.random.Generator) -> List[HuffmanNode]:
        """Randomly drop frequent words; UNK placeholders are kept so window distances hold."""
        if self.config.subsampling <= 0 or not nodes:
            return nodes
        counts = [node.count for node in nodes]
        keep = keep_probability(counts, self.training_words, self.config.subsampling)
        draws = rng.random(len(nodes))
        return [node for node, p, r in zip(nodes, keep, draws) if node.is_unk or r < p]

    def hierarchical_update(
        self, node: HuffmanNode, hidden: np.ndarray, alpha: float, update: bool = True
    ) -> np.ndarray:
        """One binary logistic step per internal node on the root-to-leaf path.

        The label at each depth is the code bit. Every score goes through sigmoid,
        so a score outside (-MAX_EXP, MAX_EXP) aborts the step.

        Args:
            node: Target leaf.
            hidden: Hidden vector, shape (D,).
            alpha: Learning rate.
            update: Also move the output rows. Defaults to True.

        Returns:
            Error vector to add to the input side, shape (D,).

        Raises:
            FloatingPointError: If a score is not finite (training diverged).
            ValueError: If a finite score is outside (-MAX_EXP, MAX_EXP).
        """
        rows = node.parents - len(self.vocab)
        weights = self.output_weights_hs[rows]
        x = weights @ hidden
        if not np.all(np.isfinite(x)):
            raise FloatingPointError(f"non-finite score in hierarchical softmax for {node!r}")
        labels = node.code.astype(np.float64)
        g = (labels - sigmoid(x)) * alpha
        error = (g @ weights).astype(np.float32)
        if update:
            # Rows on one path are distinct, so plain fancy-index add is safe
            self.output_weights_hs[rows] += np.outer(g, hidden).astype(np.float32)
        return error

    def neg_sampling_update(
        self,
        node: HuffmanNode,
        hidden: np.ndarray,
        alpha: float,
        rng: np.random.Generator,
        update: bool = True,
    ) -> np.ndarray:
        """Logistic step for the true node (label 1) and `negative` noise nodes (label 0).

        Noise draws that hit the true node are redrawn up to MAX_REDRAWS times; draws
        still equal to it after that are dropped, since a skewed table may hold no other
        word. Every score goes through sigmoid, so one outside (-MAX_EXP, MAX_EXP)
        aborts the step.

        Args:
            node: Target leaf.
            hidden: Hidden vector, shape (D,).
            alpha: Learning rate.
            rng: Generator of the calling worker.
            update: Also move the output rows. Defaults to True.

        Returns:
            Error vector to add to the input side, shape (D,).

        Raises:
            FloatingPointError: If a score is not finite (training diverged).
            ValueError: If a finite score is outside (-MAX_EXP, MAX_EXP).
        """
        draws = np.zeros(0, dtype=np.int64)
        if len(self.vocab) > 1:
            draws = self.unigram.sample(rng, self.config.negative)
            clash = draws == node.index
            for _ in range(MAX_REDRAWS):
                if not clash.any():
                    break
                draws[clash] = self.unigram.sample(rng, int(clash.sum()))
                clash = draws == node.index
            draws = draws[~clash]
        targets = np.concatenate(([node.index], draws)).astype(np.int64)
        labels = np.zeros(len(targets))
        labels[0] = 1.0

        weights = self.output_weights[targets]
        x = weights @ hidden
        if not np.all(np.isfinite(x)):
            raise FloatingPointError(f"non-finite score in negative sampling for {node!r}")
        g = (labels - sigmoid(x)) * alpha
        error = (g @ weights).astype(np.float32)
        if update:
            # Noise draws can repeat; add.at accumulates every one of them
            np.add.at(self.output_weights, targets, np.outer(g, hidden).astype(np.float32))
        return error

    def _objective(self, node, hidden, alpha, rng, update) -> np.ndarray:
        error = np.zeros(self.config.dimension, dtype=np.float32)
        if self.config.hierarchical_softmax:
            error += self.hierarchical_update(node, hidden, alpha, update)
        if self.config.negative > 0:
            error += self.neg_sampling_update(node, hidden, alpha, rng, update)
        return error

    def _context(self, nodes: List[HuffmanNode], word_pos: int, rng: np.random.Generator) -> List[int]:
        window = int(rng.integers(1, self.config.window_size + 1))
        start = max(0, word_pos - window)
        end = min(len(nodes), word_pos + window + 1)
        return [nodes[p].index for p in range(start, end) if p != word_pos and not nodes[p].is_unk]

    def train_word(
        self,
        nodes: List[HuffmanNode],
        word_pos: int,
        sent_id: Optional[int],
        alpha: float,
        rng: np.random.Generator,
        sent_weights: Optional[np.ndarray] = None,
        update: bool = True,
    ) -> None:
        """Train the word at word_pos with CBOW or skip-gram, as configured.

        Args:
            nodes: Sentence as vocabulary nodes (UNK positions are skipped).
            word_pos: Position of the target word.
            sent_id: Row of the sentence vector, or None.
            alpha: Learning rate.
            rng: Generator of the calling worker.
            sent_weights: Sentence matrix to use; defaults to sent_weights when sent_vector is on.
            update: Update word and output matrices; False only adapts the sentence row.
        """
        if nodes[word_pos].is_unk:
            return
        if sent_weights is None and self.config.sent_vector:
            sent_weights = self.sent_weights
        if sent_weights is None:
            sent_id = None
        if self.config.skip_gram:
            self.train_word_skipgram(nodes, word_pos, sent_id, alpha, rng, sent_weights, update)
        else:
            self.train_word_cbow(nodes, word_pos, sent_id, alpha, rng, sent_weights, update)

    def train_word_cbow(self, nodes, word_pos, sent_id, alpha, rng, sent_weights=None, update=True) -> None:
        """Predict the target from the mean of its context rows (plus the sentence row: PV-DM)."""
        context = self._context(nodes, word_pos, rng)
        n = len(context) + (sent_id is not None)
        if n == 0:
            return
        hidden = self.input_weights[context].sum(axis=0)
        if sent_id is not None:
            hidden += sent_weights[sent_id]
        hidden /= n

        error = self._objective(nodes[word_pos], hidden, alpha, rng, update) / n
        if update and context:
            np.add.at(self.input_weights, context, error)
        if sent_id is not None:
            sent_weights[sent_id] += error

    def train_word_skipgram(self, nodes, word_pos, sent_id, alpha, rng, sent_weights=None, update=True) -> None:
        """Predict each context word from the target row (plus the sentence row: PV-DBOW)."""
        target = nodes[word_pos].index
        for context_index in self._context(nodes, word_pos, rng):
            hidden = self.input_weights[target].copy()
            if sent_id is not None:
                hidden += sent_weights[sent_id]
            error = self._objective(self.vocab.nodes[context_index], hidden, alpha, rng, update)
            if update:
                self.input_weights[target] += error
            if sent_id is not None:
                sent_weights[sent_id] += error

    def word_vec(self, word: str, policy: int = 0) -> np.ndarray:
        """Embedding of a word.

        Args:
            word: Word (lower-cased before lookup).
            policy: 0 input row; 1 input and output rows concatenated; 2 their sum;
                3 output row only. 1-3 need negative sampling, else the input row is used.

        Returns:
            Copy of the vector.

        Raises:
            UnknownWordError: If the word is not in the vocabulary.
        """
        index = self._check_vocab()[word.lower()].index
        return self.vector(index, policy)

    def vector(self, index: int, policy: int = 0) -> np.ndarray:
        """Embedding of the leaf at index under the given policy (see word_vec)."""
        if self.config.negative > 0 and len(self.output_weights):
            if policy == 1:
                return np.concatenate([self.input_weights[index], self.output_weights[index]])
            if policy == 2:
                return self.input_weights[index] + self.output_weights[index]
            if policy == 3:
                return self.output_weights[index].copy()
        return self.input_weights[index].copy()

    def sent_vec(self, sentence: str) -> np.ndarray:
        """Infer a paragraph vector for unseen text (Le & Mikolov).

        Appends a fresh row to online_sent_weights and runs `iterations` passes over the
        sentence with decaying alpha. With config.freeze only that row is adapted.

        Args:
            sentence: Raw text line.

        Returns:
            The inferred vector; zeros when no word is in the vocabulary.
        """
        nodes = [node for node in self.get_nodes(sentence) if not node.is_unk]
        dim = self.config.dimension
        if not nodes:
            return np.zeros(dim, dtype=np.float32)
        self.online_sent_weights = np.vstack([self.online_sent_weights, self._random_rows(self._rng, 1)])
        sent_id = len(self.online_sent_weights) - 1
        update = not self.config.freeze
        iterations = self.config.iterations
        for k in range(iterations):
            alpha = decayed_alpha(self.config.alpha, k * len(nodes), iterations * len(nodes))
            for word_pos in range(len(nodes)):
                self.train_word(nodes, word_pos, sent_id, alpha, self._rng, self.online_sent_weights, update)
        return self.online_sent_weights[sent_id].copy()

    def sent_vecs(self, lines: Iterable[str]) -> Iterator[np.ndarray]:
        """Infer a vector for every line of a stream."""
        for line in lines:
            yield self.sent_vec(line)
