import numpy as np
import pytest

from paravec.config import Config
from paravec.data import (
    UnigramTable,
    chunk_line_starts,
    chunkify,
    keep_probability,
    negative_sampling_distribution,
    tokenize,
)
from paravec.download_text8 import write_lines
from paravec.model import MAX_EXP, ParaVecModel, decayed_alpha, sigmoid
from paravec.vocab import UNK, UnknownWordError, Vocabulary, build_vocab

# Unit tests: Huffman coding, pruning, unigram table, chunking, sigmoid, single update steps.


def _write(tmp_path, text, name="corpus.txt"):
    path = tmp_path / name
    path.write_text(text)
    return str(path)


def _is_prefix(a, b):
    return len(a) <= len(b) and list(b[: len(a)]) == list(a)


def test_sigmoid_values_and_bounds():
    assert sigmoid(0) == 0.5
    x = np.linspace(-5.99, 5.99, 101)
    np.testing.assert_allclose(sigmoid(x), 1.0 / (1.0 + np.exp(-x)), rtol=1e-12)
    for bad in (MAX_EXP, -MAX_EXP, 7.0, -100.0, np.nan):
        with pytest.raises(ValueError):
            sigmoid(bad)
    with pytest.raises(ValueError):
        sigmoid(np.array([0.0, 6.5]))


def test_tokenize_lowercases():
    assert tokenize("The  Cat\tSAT .\n") == ["the", "cat", "sat", "."]


def test_example_corpus_vocabulary(tmp_path):
    path = _write(tmp_path, "the cat sat . the dog sat .\n")
    vocab = build_vocab(path, min_count=1)
    assert len(vocab) == 5
    assert set(vocab.words) == {"the", "cat", "sat", ".", "dog"}
    assert vocab.total_words == 8
    assert vocab.total_lines == 1
    for node in vocab:
        assert node.is_leaf and not node.is_unk
        assert len(node.code) > 0
        assert len(node.parents) == len(node.code)
    assert vocab["the"].count == 2
    assert vocab["cat"].count == 1


def test_huffman_codes_are_prefix_free():
    rng = np.random.default_rng(0)
    counts = rng.integers(1, 1000, size=60)
    vocab = Vocabulary.from_counts([f"w{i}" for i in range(60)], counts)
    codes = [tuple(node.code) for node in vocab]
    assert len(set(codes)) == len(codes)
    for i, a in enumerate(codes):
        for j, b in enumerate(codes):
            if i != j:
                assert not _is_prefix(a, b), f"{a} is a prefix of {b}"


def test_internal_nodes_follow_leaves():
    vocab = Vocabulary.from_counts(["a", "b", "c", "d", "e"], [5, 4, 3, 2, 1])
    L = len(vocab)
    assert vocab.n_internal == L - 1
    assert [node.index for node in vocab.nodes] == list(range(2 * L - 1))
    assert all(not node.is_leaf for node in vocab.nodes[L:])
    root = vocab.root
    assert root == 2 * L - 2
    assert vocab.nodes[root].count == 15
    for node in vocab:
        # Path starts at the root and only visits internal nodes
        assert node.parents[0] == root
        assert np.all(node.parents >= L)


def test_parent_chain_matches_code_bits():
    vocab = Vocabulary.from_counts(["a", "b", "c", "d"], [10, 6, 3, 1])
    for node in vocab:
        for depth, parent in enumerate(node.parents):
            internal = vocab.nodes[parent]
            child = internal.left if node.code[depth] == 0 else internal.right
            expected = node.parents[depth + 1] if depth + 1 < len(node.parents) else node.index
            assert child == expected


def test_frequent_words_get_shorter_codes():
    vocab = Vocabulary.from_counts(["common", "a", "b", "c", "d"], [1000, 1, 1, 1, 1])
    depths = {node.word: len(node.code) for node in vocab}
    assert depths["common"] == 1
    assert all(depths[w] > 1 for w in "abcd")


def test_single_word_vocabulary_has_code():
    vocab = Vocabulary.from_counts(["only"], [3])
    node = vocab["only"]
    assert list(node.code) == [0]
    assert list(node.parents) == [1]
    assert vocab.n_internal == 1


def test_reduce_vocab_prunes_and_reindexes():
    vocab = Vocabulary()
    for word in "a b a c b a d".split():
        vocab.add_word(word)
    removed = vocab.reduce_vocab(min_count=2)
    assert removed == 2
    assert vocab.words == ["a", "b"]
    assert [node.index for node in vocab] == [0, 1]
    assert vocab.total_words == 5
    assert "c" not in vocab
    assert vocab.get("c") is UNK


def test_reduce_vocab_is_idempotent():
    vocab = Vocabulary()
    for word in "x y x z x y w".split():
        vocab.add_word(word)
    vocab.reduce_vocab(min_count=2)
    vocab.create_binary_tree()
    words, counts = vocab.words, vocab.counts.copy()
    codes = [node.code.copy() for node in vocab]
    n_nodes = len(vocab.nodes)

    assert vocab.reduce_vocab(min_count=2) == 0
    assert vocab.words == words
    np.testing.assert_array_equal(vocab.counts, counts)
    assert len(vocab.nodes) == n_nodes
    for node, code in zip(vocab, codes):
        np.testing.assert_array_equal(node.code, code)


def test_empty_vocabulary_raises(tmp_path):
    path = _write(tmp_path, "rare words only here\n")
    with pytest.raises(ValueError):
        build_vocab(path, min_count=2)


def test_unknown_word_lookup():
    vocab = Vocabulary.from_counts(["a", "b"], [2, 1])
    assert vocab.get("zzz") is UNK
    assert UNK.is_unk and UNK.index == -1
    with pytest.raises(UnknownWordError):
        vocab["zzz"]
    with pytest.raises(KeyError):
        vocab["zzz"]


def test_negative_sampling_distribution():
    counts = np.array([10.0, 1.0, 100.0])
    probs = negative_sampling_distribution(counts, power=0.75)
    assert np.isclose(probs.sum(), 1.0)
    assert np.all(probs > 0)
    assert probs[2] > probs[0] > probs[1]  # higher count -> higher prob


def test_unigram_table_slot_shares():
    counts = [1, 10, 100, 1000]
    vocab = Vocabulary.from_counts(list("abcd"), counts)
    table = UnigramTable(vocab, table_size=100000)
    assert len(table) == 100000
    # Filled in index order
    assert np.all(np.diff(table.table) >= 0)
    shares = np.bincount(table.table, minlength=4) / len(table)
    np.testing.assert_allclose(shares, negative_sampling_distribution(counts), atol=1e-4)


def test_unigram_sampling_matches_power_law():
    counts = [5, 50, 500]
    vocab = Vocabulary.from_counts(list("abc"), counts)
    table = UnigramTable(vocab, table_size=50000)
    rng = np.random.default_rng(7)
    draws = table.sample(rng, 200000)
    freqs = np.bincount(draws, minlength=3) / len(draws)
    np.testing.assert_allclose(freqs, negative_sampling_distribution(counts), atol=0.01)
    assert isinstance(table.sample(rng), int)


def test_keep_probability_rare_always_kept():
    keep = keep_probability([1, 10, 10000], total_words=20000, sample=1e-3)
    assert keep[0] == 1.0
    assert keep[1] == 1.0
    assert keep[2] < 0.5
    np.testing.assert_array_equal(keep_probability([1, 10000], 20000, 0.0), [1.0, 1.0])


def test_chunkify_boundaries_are_line_aligned(tmp_path):
    lines = [" ".join(["w"] * (i % 7 + 1)) for i in range(50)]
    path = _write(tmp_path, "\n".join(lines) + "\n")
    data = open(path, "rb").read()
    size = len(data)
    for n in range(1, 9):
        chunks = chunkify(path, n)
        assert len(chunks) == n + 1
        assert chunks[0] == 0 and chunks[-1] == size
        assert all(a <= b for a, b in zip(chunks, chunks[1:]))
        for b in chunks[1:-1]:
            assert b == size or data[b - 1 : b] == b"\n"


def test_chunkify_degenerate_cases(tmp_path):
    path = _write(tmp_path, "ab\n")
    assert chunkify(path, 1) == [0, 3]
    chunks = chunkify(path, 5)
    assert len(chunks) == 6
    assert chunks[0] == 0 and chunks[-1] == 3
    assert all(b in (0, 3) for b in chunks)
    # No trailing newline
    path = _write(tmp_path, "one line\nlast", name="tail.txt")
    chunks = chunkify(path, 3)
    assert chunks[-1] == 13
    assert all(b in (0, 9, 13) for b in chunks)
    with pytest.raises(ValueError):
        chunkify(path, 0)


def test_chunks_cover_every_line_once(tmp_path):
    lines = [f"line {i} " + "x " * (i % 5) for i in range(40)]
    path = _write(tmp_path, "\n".join(lines) + "\n")
    chunks = chunkify(path, 4)
    starts = chunk_line_starts(path, chunks)
    seen = []
    with open(path, "rb") as f:
        for begin, end in zip(chunks[:-1], chunks[1:]):
            f.seek(begin)
            while f.tell() < end:
                seen.append(f.readline().decode().rstrip("\n"))
    assert seen == lines
    assert starts[0] == 0
    assert all(a <= b for a, b in zip(starts, starts[1:]))
    assert seen[starts[2]].startswith(f"line {starts[2]} ")


def test_config_validation():
    with pytest.raises(ValueError):
        Config(dimension=0)
    with pytest.raises(ValueError):
        Config(negative=0, hierarchical_softmax=False)
    with pytest.raises(ValueError):
        Config(subsampling=-1.0)
    config = Config(negative=0, hierarchical_softmax=True)
    with pytest.raises(AttributeError):
        config.dimension = 10  # frozen
    assert Config.from_dict({**config.to_dict(), "unused": 1}) == config


def test_decayed_alpha_is_linear_with_floor():
    assert decayed_alpha(0.05, 0, 1000) == pytest.approx(0.05)
    assert decayed_alpha(0.05, 500, 1000) == pytest.approx(0.05 * (1 - 500 / 1001))
    assert decayed_alpha(0.05, 1001, 1000) == pytest.approx(0.05 * 1e-4)
    assert decayed_alpha(0.05, 5000, 1000) == pytest.approx(0.05 * 1e-4)
    values = [decayed_alpha(0.05, w, 1000) for w in range(0, 1200, 100)]
    assert all(a >= b for a, b in zip(values, values[1:]))


def _small_model(**overrides):
    config = Config(dimension=8, seed=0, **overrides)
    model = ParaVecModel(config)
    model.vocab = Vocabulary.from_counts(["a", "b", "c", "d"], [10, 6, 3, 1])
    model.training_words = model.vocab.total_words
    model.unigram = UnigramTable(model.vocab, table_size=1000) if config.negative else None
    model.init_net()
    return model


def test_saturated_scores_raise():
    model = _small_model(hierarchical_softmax=True, negative=3)
    model.output_weights_hs[:] = 10.0
    model.output_weights[:] = 10.0
    hs_before = model.output_weights_hs.copy()
    ns_before = model.output_weights.copy()
    hidden = np.ones(8, dtype=np.float32)
    with pytest.raises(ValueError, match="out of range"):
        model.hierarchical_update(model.vocab["d"], hidden, 0.05)
    with pytest.raises(ValueError, match="out of range"):
        model.neg_sampling_update(model.vocab["a"], hidden, 0.05, np.random.default_rng(0))
    np.testing.assert_array_equal(model.output_weights_hs, hs_before)
    np.testing.assert_array_equal(model.output_weights, ns_before)


def test_hierarchical_update_moves_only_path_rows():
    model = _small_model(hierarchical_softmax=True, negative=0)
    node = model.vocab["a"]
    hidden = np.full(8, 0.1, dtype=np.float32)
    error = model.hierarchical_update(node, hidden, 0.05)
    rows = set((node.parents - len(model.vocab)).tolist())
    # Zero output rows give zero error on the first step
    np.testing.assert_array_equal(error, np.zeros(8))
    for r in range(model.vocab.n_internal):
        changed = np.any(model.output_weights_hs[r] != 0)
        assert changed == (r in rows)
    frozen = model.output_weights_hs.copy()
    model.hierarchical_update(node, hidden, 0.05, update=False)
    np.testing.assert_array_equal(model.output_weights_hs, frozen)


def test_neg_sampling_update_never_draws_target():
    model = _small_model(negative=20)
    rng = np.random.default_rng(3)
    hidden = np.full(8, 0.1, dtype=np.float32)
    model.neg_sampling_update(model.vocab["a"], hidden, 0.05, rng)
    # Positive row moves towards hidden, noise rows away from it
    assert np.all(model.output_weights[0] > 0)
    assert np.all(model.output_weights[1:] <= 0)
    assert np.any(model.output_weights[1:] < 0)


def test_neg_sampling_with_table_holding_only_target():
    model = ParaVecModel(Config(dimension=8, seed=0, negative=5))
    model.vocab = Vocabulary.from_counts(["big", "rare"], [100, 1])
    model.unigram = UnigramTable(model.vocab, table_size=10)
    assert np.all(model.unigram.table == model.vocab["big"].index)
    model.init_net()
    hidden = np.full(8, 0.1, dtype=np.float32)
    model.neg_sampling_update(model.vocab["big"], hidden, 0.05, np.random.default_rng(0))
    # Only the positive example is trained once every draw collides
    np.testing.assert_allclose(model.output_weights[0], 0.5 * 0.05 * hidden)
    np.testing.assert_array_equal(model.output_weights[1], np.zeros(8))


def test_write_lines_splits_token_stream(tmp_path):
    path = str(tmp_path / "out" / "text8.txt")
    write_lines("a b c d e f g".split(), path, words_per_line=3)
    with open(path) as f:
        assert f.read() == "a b c\nd e f\ng\n"
    vocab = build_vocab(path, min_count=1)
    assert vocab.total_lines == 3
    assert vocab.total_words == 7
    with pytest.raises(ValueError):
        write_lines(["a"], path, words_per_line=0)


def test_divergence_is_reported():
    model = _small_model(hierarchical_softmax=True, negative=0)
    model.output_weights_hs[:] = np.nan
    with pytest.raises(FloatingPointError):
        model.hierarchical_update(model.vocab["a"], np.ones(8, dtype=np.float32), 0.05)


def test_get_nodes_maps_unknown_to_unk():
    model = _small_model()
    nodes = model.get_nodes("A zzz b")
    assert nodes[0] is model.vocab["a"]
    assert nodes[1] is UNK
    assert nodes[2] is model.vocab["b"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
