import json
import logging

import numpy as np

from paravec.config import Config
from paravec.data import UNIGRAM_TABLE_SIZE, UnigramTable
from paravec.model import ParaVecModel
from paravec.vocab import Vocabulary

# Output side: word2vec text/binary vector files, sentence vectors, and whole-model
# archives (.npz with the config stored as JSON).

logger = logging.getLogger(__name__)


def _word_matrix(model: ParaVecModel, policy: int) -> np.ndarray:
    return np.stack([model.vector(i, policy) for i in range(len(model.vocab))]).astype(np.float32)


def save_vectors(model: ParaVecModel, path: str, policy: int = 0) -> None:
    """Write word vectors in the word2vec text format ("V D" header, then "word x1 .. xD")."""
    matrix = _word_matrix(model, policy)
    with open(path, "w", encoding="utf-8") as f:
        f.write(f"{matrix.shape[0]} {matrix.shape[1]}\n")
        for word, row in zip(model.vocab.words, matrix):
            f.write(word + " " + " ".join(f"{x:.6f}" for x in row) + "\n")
    logger.info("saved %i word vectors to %s", len(matrix), path)


def save_vectors_bin(model: ParaVecModel, path: str, policy: int = 0) -> None:
    """Write word vectors in the word2vec binary format (raw little-endian float32 rows)."""
    matrix = _word_matrix(model, policy)
    with open(path, "wb") as f:
        f.write(f"{matrix.shape[0]} {matrix.shape[1]}\n".encode("utf-8"))
        for word, row in zip(model.vocab.words, matrix):
            f.write(word.encode("utf-8") + b" ")
            f.write(row.astype("<f4").tobytes())
            f.write(b"\n")
    logger.info("saved %i word vectors to %s", len(matrix), path)


def save_sent_vectors(model: ParaVecModel, path: str) -> None:
    """Write one sentence vector per line, in training-line order."""
    with open(path, "w", encoding="utf-8") as f:
        for row in model.sent_weights:
            f.write(" ".join(f"{x:.6f}" for x in row) + "\n")
    logger.info("saved %i sentence vectors to %s", len(model.sent_weights), path)


def save_model(model: ParaVecModel, path: str) -> None:
    """Save config, vocabulary and every trained matrix to one .npz archive.

    Args:
        model: Trained model.
        path: Target file; numpy appends ".npz" if missing.
    """
    vocab = model.vocab
    if vocab is None:
        raise RuntimeError("model has no vocabulary; nothing to save")
    np.savez_compressed(
        path,
        config=np.array(json.dumps(model.config.to_dict())),
        words=np.array(vocab.words, dtype=str),
        counts=vocab.counts,
        totals=np.array([model.training_words, model.training_lines], dtype=np.int64),
        input_weights=model.input_weights,
        output_weights=model.output_weights,
        output_weights_hs=model.output_weights_hs,
        sent_weights=model.sent_weights,
    )
    logger.info("saved model (%i words) to %s", len(vocab), path)


def load_model(path: str, unigram_table_size: int = UNIGRAM_TABLE_SIZE) -> ParaVecModel:
    """Load a model written by save_model; the Huffman tree and unigram table are rebuilt.

    Args:
        path: Archive path.
        unigram_table_size: Slots in the rebuilt negative-sampling table.

    Returns:
        Model ready for inference, export, or evaluation.
    """
    with np.load(path, allow_pickle=False) as archive:
        config = Config.from_dict(json.loads(archive["config"].item()))
        model = ParaVecModel(config)
        training_words, training_lines = (int(x) for x in archive["totals"])
        model.vocab = Vocabulary.from_counts(
            [str(w) for w in archive["words"]], archive["counts"], training_lines
        )
        model.training_words = training_words
        model.training_lines = training_lines
        for name in ("input_weights", "output_weights", "output_weights_hs", "sent_weights"):
            setattr(model, name, archive[name].astype(np.float32))
    if config.negative > 0:
        model.unigram = UnigramTable(model.vocab, unigram_table_size)
    logger.info("loaded model (%i words) from %s", len(model.vocab), path)
    return model
