import logging
import threading
import time
from typing import List

import numpy as np

from paravec.data import UNIGRAM_TABLE_SIZE, chunk_line_starts, chunkify
from paravec.model import ParaVecModel, decayed_alpha

# Training loop: one thread per line-aligned file chunk, every thread running all epochs
# over its chunk. Weights, the progress counter and alpha are shared without locks.

logger = logging.getLogger(__name__)

# Words a worker trains between two refreshes of the shared counter and alpha
PROGRESS_INTERVAL = 10000


def train_sentence(model: ParaVecModel, sentence: str, sent_id: int, rng: np.random.Generator) -> int:
    """Subsample and train every known word of one line.

    Args:
        model: Model being trained (modified in place).
        sentence: Raw line.
        sent_id: Global line index (row of the sentence vector).
        rng: Generator of the calling worker.

    Returns:
        Number of in-vocabulary words on the line, before subsampling.
    """
    nodes = model.get_nodes(sentence)
    n_words = sum(1 for node in nodes if not node.is_unk)
    nodes = model.subsample(nodes, rng)
    alpha = model.alpha
    for word_pos in range(len(nodes)):
        model.train_word(nodes, word_pos, sent_id, alpha, rng)
    return n_words


def train_chunk(
    model: ParaVecModel,
    training_file: str,
    chunks: List[int],
    line_starts: List[int],
    chunk_id: int,
    rng: np.random.Generator,
    history: List[dict],
) -> None:
    """Worker body: train all epochs over bytes [chunks[id], chunks[id + 1]).

    Args:
        model: Shared model.
        training_file: Corpus path; opened with a handle private to this worker.
        chunks: Offsets from chunkify.
        line_starts: First line index of each chunk.
        chunk_id: Chunk owned by this worker.
        rng: Generator owned by this worker.
        history: Shared list receiving {"words", "alpha"} samples.
    """
    config = model.config
    begin, end = chunks[chunk_id], chunks[chunk_id + 1]
    total_words = config.iterations * model.training_words
    word_count = 0
    last_count = 0
    start = time.time()

    with open(training_file, "rb") as f:
        for epoch in range(config.iterations):
            f.seek(begin)
            sent_id = line_starts[chunk_id]
            while f.tell() < end:
                line = f.readline()
                if not line:
                    break
                word_count += train_sentence(model, line.decode("utf-8", errors="replace"), sent_id, rng)
                sent_id += 1

                if word_count - last_count > PROGRESS_INTERVAL:
                    # Racy read-modify-write; only needs to grow monotonically over the run
                    model.words_processed += word_count - last_count
                    last_count = word_count
                    model.alpha = decayed_alpha(config.alpha, model.words_processed, total_words)
                    history.append({"words": model.words_processed, "alpha": model.alpha})
                    if config.verbose:
                        elapsed = max(time.time() - start, 1e-9)
                        logger.info(
                            "alpha %.6f, progress %.2f%%, %.2fk words/thread/sec",
                            model.alpha,
                            100.0 * model.words_processed / max(total_words, 1),
                            word_count / elapsed / 1000,
                        )
            logger.debug("worker %i finished epoch %i/%i", chunk_id, epoch + 1, config.iterations)

    model.words_processed += word_count - last_count


def train(
    model: ParaVecModel,
    training_file: str,
    *,
    unigram_table_size: int = UNIGRAM_TABLE_SIZE,
) -> List[dict]:
    """Train from scratch on a file with one sentence per line (resets vocabulary and weights).

    Args:
        model: ParaVecModel instance (modified in place).
        training_file: Corpus path.
        unigram_table_size: Slots in the negative-sampling table. Defaults to UNIGRAM_TABLE_SIZE.

    Returns:
        List of dicts with keys "words" and "alpha", sorted by words processed.

    Raises:
        ValueError: If no word survives min_count.
        Exception: The first error raised inside a worker, re-raised after all workers join.
    """
    config = model.config
    if config.verbose:
        config.log_summary()

    model.build_vocab(training_file, table_size=unigram_table_size)
    model.init_net()
    if config.sent_vector:
        model.init_sent_weights()
    model.words_processed = 0
    model.alpha = config.alpha

    chunks = chunkify(training_file, config.threads)
    line_starts = chunk_line_starts(training_file, chunks)
    seeds = np.random.SeedSequence(config.seed).spawn(config.threads)
    history: List[dict] = []
    errors: List[BaseException] = []

    def worker(chunk_id: int) -> None:
        try:
            rng = np.random.default_rng(seeds[chunk_id])
            train_chunk(model, training_file, chunks, line_starts, chunk_id, rng, history)
        except BaseException as exc:  # re-raised in the calling thread after join
            errors.append(exc)

    start = time.time()
    workers = [
        threading.Thread(target=worker, args=(i,), name=f"paravec-worker-{i}")
        for i in range(config.threads)
    ]
    for thread in workers:
        thread.start()
    for thread in workers:
        thread.join()
    if errors:
        raise errors[0]

    elapsed = time.time() - start
    logger.info(
        "trained %i words x %i iterations on %i threads in %.1fs",
        model.training_words,
        config.iterations,
        config.threads,
        elapsed,
    )
    history.sort(key=lambda h: h["words"])
    history.append({"words": model.words_processed, "alpha": model.alpha})
    return history
