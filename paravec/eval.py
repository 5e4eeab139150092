import logging
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np

from paravec.data import tokenize
from paravec.model import ParaVecModel
from paravec.vocab import UnknownWordError

# Evaluation on trained vectors: cosine similarity, n-gram similarity, nearest neighbours,
# analogy accuracy (word2vec questions-words format), per-column weight normalization.

logger = logging.getLogger(__name__)


def l2_normalize(X: np.ndarray, axis: int = -1) -> np.ndarray:
    """L2-normalize array along the given axis (zero vectors get divisor 1).

    Args:
        X: Input array.
        axis: Axis along which to normalize. Defaults to -1.

    Returns:
        Normalized array, same shape as X.
    """
    norm = np.linalg.norm(X, axis=axis, keepdims=True)
    norm = np.where(norm > 0, norm, 1.0)
    return X / norm


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Cosine similarity between two vectors (flattened); 0.0 if either is all zeros."""
    a = np.asarray(a, dtype=np.float64).ravel()
    b = np.asarray(b, dtype=np.float64).ravel()
    denom = np.linalg.norm(a) * np.linalg.norm(b)
    if denom == 0:
        return 0.0
    return float(np.dot(a, b) / denom)


def similarity(model: ParaVecModel, word1: str, word2: str, policy: int = 0) -> float:
    """Cosine similarity between two words.

    Identical words score exactly 1.0 (once known). Weights can be min-max normalized
    beforehand with normalize_model_weights.

    Raises:
        UnknownWordError: If either word is not in the vocabulary.
    """
    v1 = model.word_vec(word1, policy)
    if word1.lower() == word2.lower():
        return 1.0
    v2 = model.word_vec(word2, policy)
    return cosine_similarity(v1, v2)


def distance(model: ParaVecModel, word1: str, word2: str, policy: int = 0) -> float:
    return 1.0 - similarity(model, word1, word2, policy)


def similarity_ngrams(model: ParaVecModel, seq1: str, seq2: str, policy: int = 0) -> float:
    """Mean word-by-word similarity of two equally long token sequences.

    Pairs with an unknown word are skipped.

    Args:
        model: Trained model.
        seq1: First sequence (whitespace-separated).
        seq2: Second sequence, same number of tokens.
        policy: Word-vector policy (see ParaVecModel.word_vec). Defaults to 0.

    Returns:
        Average similarity over the known pairs.

    Raises:
        ValueError: If the sequences differ in length.
        UnknownWordError: If every pair contains an unknown word.
    """
    words1 = tokenize(seq1)
    words2 = tokenize(seq2)
    if len(words1) != len(words2):
        raise ValueError(f"input sequences don't have the same size ({len(words1)} != {len(words2)})")

    scores = []
    for w1, w2 in zip(words1, words2):
        try:
            scores.append(similarity(model, w1, w2, policy))
        except UnknownWordError:
            continue
    if not scores:
        raise UnknownWordError("all word pairs are unknown (OOV)")
    return float(np.mean(scores))


def normalize_weights(weights: np.ndarray) -> np.ndarray:
    """Min-max scale every column to [0, 1] in place; constant columns are left as they are.

    Args:
        weights: 2D matrix (rows are vectors).

    Returns:
        The same array, for chaining.
    """
    if weights.size == 0:
        return weights
    lo = weights.min(axis=0)
    hi = weights.max(axis=0)
    spread = hi != lo
    weights[:, spread] = (weights[:, spread] - lo[spread]) / (hi[spread] - lo[spread])
    return weights


def normalize_model_weights(model: ParaVecModel) -> None:
    for weights in (model.input_weights, model.output_weights, model.output_weights_hs, model.sent_weights):
        normalize_weights(weights)


def nearest(model: ParaVecModel, word: str, k: int = 5, policy: int = 0) -> List[Tuple[str, float]]:
    """k nearest neighbours of a word by cosine similarity (the word itself excluded).

    Raises:
        UnknownWordError: If the word is not in the vocabulary.
    """
    vocab = model.vocab
    i = vocab[word.lower()].index
    E = l2_normalize(np.stack([model.vector(j, policy) for j in range(len(vocab))]).astype(np.float64), axis=1)
    sims = E @ E[i]
    sims[i] = -2.0
    order = np.argsort(-sims)[:k]
    return [(vocab.nodes[j].word, float(sims[j])) for j in order]


def analogy(
    embeddings: np.ndarray,
    word2id: Dict[str, int],
    id_to_word: List[str],
    a: str,
    b: str,
    c: str,
    k: int = 1,
) -> Optional[List[str]]:
    """Solve "a is to b as c is to ?" with b - a + c; return k nearest (excluding a, b, c).

    Args:
        embeddings: (V, D) embedding matrix.
        word2id: Mapping word -> id.
        id_to_word: List of words by id.
        a: First word of analogy.
        b: Second word.
        c: Third word.
        k: Number of nearest neighbours to return. Defaults to 1.

    Returns:
        List of k nearest word strings, or None if any of a, b, c not in vocab.
    """
    for w in (a, b, c):
        if w not in word2id:
            return None
    ia, ib, ic = word2id[a], word2id[b], word2id[c]
    vec = embeddings[ib] - embeddings[ia] + embeddings[ic]
    E = l2_normalize(embeddings.astype(np.float64), axis=1)
    vec_n = l2_normalize(vec.astype(np.float64).reshape(1, -1), axis=1)
    sims = np.dot(E, vec_n.ravel())
    for idx in (ia, ib, ic):
        sims[idx] = -2.0
    nearest_ids = np.argsort(-sims)[:k]
    return [id_to_word[j] for j in nearest_ids]


def compute_accuracy(
    model: ParaVecModel,
    lines: Iterable[str],
    max_vocabulary_size: int = 0,
    policy: int = 0,
) -> Dict[str, Tuple[int, int]]:
    """Analogy accuracy on a word2vec questions file (": section" headers, "a b c d" lines).

    Only questions whose four words rank within the first max_vocabulary_size vocabulary
    entries (by index; 0 means the whole vocabulary) are counted.

    Args:
        model: Trained model.
        lines: Lines of the questions file.
        max_vocabulary_size: Restrict the search space. Defaults to 0 (no limit).
        policy: Word-vector policy. Defaults to 0.

    Returns:
        Dict section -> (correct, total), plus key "total" for the whole file.
    """
    vocab = model.vocab
    size = len(vocab) if max_vocabulary_size <= 0 else min(max_vocabulary_size, len(vocab))
    id_to_word = vocab.words[:size]
    word2id = {w: i for i, w in enumerate(id_to_word)}
    embeddings = np.stack([model.vector(i, policy) for i in range(size)]) if size else np.zeros((0, 0))

    results: Dict[str, Tuple[int, int]] = {}
    section = "default"
    correct_all = total_all = 0
    for line in lines:
        line = line.strip()
        if not line:
            continue
        if line.startswith(":"):
            section = line[1:].strip()
            continue
        words = tokenize(line)
        if len(words) != 4:
            logger.warning("skipping malformed question: %r", line)
            continue
        a, b, c, expected = words
        if expected not in word2id:
            continue
        preds = analogy(embeddings, word2id, id_to_word, a, b, c, k=1)
        if preds is None:
            continue
        correct, total = results.get(section, (0, 0))
        hit = preds[0] == expected
        results[section] = (correct + hit, total + 1)
        correct_all += hit
        total_all += 1

    for name, (correct, total) in results.items():
        logger.info("%s: %i/%i = %.1f%%", name, correct, total, 100.0 * correct / total)
    if total_all:
        logger.info("total: %i/%i = %.1f%%", correct_all, total_all, 100.0 * correct_all / total_all)
    results["total"] = (correct_all, total_all)
    return results
