import heapq
import logging
from typing import Dict, Iterator, List, Optional

import numpy as np

# Vocabulary and Huffman tree. All nodes live in one arena list: leaves are 0..L-1,
# internal nodes L..L+I-1. Children and parent chains store arena indices.

logger = logging.getLogger(__name__)


class UnknownWordError(KeyError):
    """Raised when a word has no entry in the vocabulary."""

    def __str__(self) -> str:
        return self.args[0] if self.args else "unknown word"


class HuffmanNode:
    """Vocabulary word (leaf) or merge point (internal node) of the Huffman tree.

    Attributes:
        word (Optional[str]): Word text; None for internal nodes.
        count (int): Corpus frequency (sum of children for internal nodes).
        index (int): Row in the weight matrices; -1 for UNK.
        is_leaf (bool): True for vocabulary words.
        is_unk (bool): True only for the UNK sentinel.
        is_sent_id (bool): True for nodes standing for a sentence id.
        code (np.ndarray): Bits on the root-to-leaf path (leaves only).
        parents (np.ndarray): Arena indices of the internal nodes on that path.
        left (Optional[int]): Arena index of the left child (internal nodes).
        right (Optional[int]): Arena index of the right child (internal nodes).
    """

    __slots__ = ("word", "count", "index", "is_leaf", "is_unk", "is_sent_id",
                 "code", "parents", "left", "right")

    def __init__(
        self,
        index: int = -1,
        word: Optional[str] = None,
        count: int = 1,
        is_leaf: bool = True,
        is_unk: bool = False,
        is_sent_id: bool = False,
    ):
        self.word = word
        self.count = count
        self.index = index
        self.is_leaf = is_leaf
        self.is_unk = is_unk
        self.is_sent_id = is_sent_id
        self.code = np.zeros(0, dtype=np.uint8)
        self.parents = np.zeros(0, dtype=np.int64)
        self.left: Optional[int] = None
        self.right: Optional[int] = None

    def __repr__(self) -> str:
        if self.is_unk:
            return "HuffmanNode(UNK)"
        return f"HuffmanNode(index={self.index}, word={self.word!r}, count={self.count})"


# Out-of-vocabulary sentinel; never indexes a weight matrix.
UNK = HuffmanNode(index=-1, count=0, is_leaf=False, is_unk=True)


class Vocabulary:
    """Word -> HuffmanNode store with the Huffman tree built over its leaves.

    Attributes:
        nodes (List[HuffmanNode]): Arena of leaves followed by internal nodes.
        total_words (int): Number of corpus tokens (in-vocabulary ones after pruning).
        total_lines (int): Number of corpus lines (sentences).
    """

    def __init__(self):
        self.nodes: List[HuffmanNode] = []
        self._index: Dict[str, int] = {}
        self.total_words = 0
        self.total_lines = 0
        self.root: Optional[int] = None

    def __len__(self) -> int:
        """Number of leaves (vocabulary words)."""
        return len(self._index)

    def __contains__(self, word: str) -> bool:
        return word in self._index

    def __getitem__(self, word: str) -> HuffmanNode:
        try:
            return self.nodes[self._index[word]]
        except KeyError:
            raise UnknownWordError(f"unknown word: {word!r}") from None

    def __iter__(self) -> Iterator[HuffmanNode]:
        """Iterate over leaves in index order."""
        return iter(self.nodes[: len(self)])

    def get(self, word: str) -> HuffmanNode:
        """Node for word, or UNK if it is not in the vocabulary."""
        i = self._index.get(word)
        return UNK if i is None else self.nodes[i]

    @property
    def words(self) -> List[str]:
        return [node.word for node in self]

    @property
    def counts(self) -> np.ndarray:
        return np.array([node.count for node in self], dtype=np.int64)

    @property
    def n_internal(self) -> int:
        return len(self.nodes) - len(self)

    def add_word(self, word: str) -> HuffmanNode:
        """Insert word with count 1 at the next free index, or bump its count."""
        i = self._index.get(word)
        if i is not None:
            node = self.nodes[i]
            node.count += 1
            return node
        if self.n_internal:
            raise RuntimeError("cannot add words once the Huffman tree is built")
        node = HuffmanNode(index=len(self.nodes), word=word)
        self._index[word] = node.index
        self.nodes.append(node)
        return node

    def read_vocab(self, path: str) -> None:
        """Count every lower-cased whitespace token of the file, one sentence per line."""
        with open(path, encoding="utf-8", errors="replace", newline="\n") as f:
            for line in f:
                self.total_lines += 1
                for word in line.lower().split():
                    self.add_word(word)
                    self.total_words += 1
        logger.info(
            "read %i words, %i lines, %i distinct words from %s",
            self.total_words,
            self.total_lines,
            len(self),
            path,
        )

    def reduce_vocab(self, min_count: int) -> int:
        """Drop words seen fewer than min_count times and reindex the rest densely.

        Survivors keep their relative order. When nothing falls below the threshold
        the vocabulary (and any tree already built) is left untouched.

        Args:
            min_count: Minimum count to keep a word.

        Returns:
            Number of words removed.
        """
        leaves = list(self)
        kept = [node for node in leaves if node.count >= min_count]
        removed = len(leaves) - len(kept)
        if removed == 0:
            return 0
        self._index = {}
        for i, node in enumerate(kept):
            node.index = i
            node.code = np.zeros(0, dtype=np.uint8)
            node.parents = np.zeros(0, dtype=np.int64)
            self._index[node.word] = i
        # Any previous tree referenced old indices
        self.nodes = kept
        self.root = None
        self.total_words = int(sum(node.count for node in kept))
        logger.info("pruned %i words below min_count=%i, %i left", removed, min_count, len(kept))
        return removed

    def create_binary_tree(self) -> None:
        """Build the Huffman tree: merge the two lowest counts until one root remains.

        Ties break on the lower arena index, so the tree is deterministic.

        Raises:
            ValueError: If the vocabulary is empty.
        """
        n_leaves = len(self)
        if n_leaves == 0:
            raise ValueError("cannot build a Huffman tree over an empty vocabulary")
        del self.nodes[n_leaves:]

        heap = [(node.count, node.index) for node in self]
        heapq.heapify(heap)
        if n_leaves == 1:
            # A lone leaf still needs one decision so its code is not empty
            root = HuffmanNode(index=1, count=self.nodes[0].count, is_leaf=False)
            root.left = 0
            self.nodes.append(root)
        while len(heap) > 1:
            count_left, left = heapq.heappop(heap)
            count_right, right = heapq.heappop(heap)
            parent = HuffmanNode(index=len(self.nodes), count=count_left + count_right, is_leaf=False)
            parent.left = left
            parent.right = right
            self.nodes.append(parent)
            heapq.heappush(heap, (parent.count, parent.index))

        self.root = len(self.nodes) - 1
        self.assign_codes(self.root, [], [])
        max_depth = max(len(node.code) for node in self)
        logger.info(
            "built Huffman tree over %i words, %i internal nodes, max depth %i",
            n_leaves,
            self.n_internal,
            max_depth,
        )

    def assign_codes(self, index: int, code: List[int], parents: List[int]) -> None:
        """Walk from index down, left appending bit 0 and right bit 1; store paths on leaves."""
        node = self.nodes[index]
        if node.is_leaf:
            node.code = np.array(code, dtype=np.uint8)
            node.parents = np.array(parents, dtype=np.int64)
            return
        parents = parents + [index]
        if node.left is not None:
            self.assign_codes(node.left, code + [0], parents)
        if node.right is not None:
            self.assign_codes(node.right, code + [1], parents)

    @classmethod
    def from_counts(cls, words: List[str], counts, total_lines: int = 0) -> "Vocabulary":
        """Rebuild a vocabulary (and its tree) from words and counts in index order."""
        vocab = cls()
        for word, count in zip(words, counts):
            node = vocab.add_word(word)
            node.count = int(count)
        vocab.total_words = int(sum(node.count for node in vocab))
        vocab.total_lines = total_lines
        if len(vocab):
            vocab.create_binary_tree()
        return vocab


def build_vocab(path: str, min_count: int = 5) -> Vocabulary:
    """Read a corpus file, prune rare words and build the Huffman tree.

    Args:
        path: Training file, one sentence per line.
        min_count: Minimum count to keep a word. Defaults to 5.

    Returns:
        Vocabulary ready for training.

    Raises:
        ValueError: If no word reaches min_count.
    """
    vocab = Vocabulary()
    vocab.read_vocab(path)
    vocab.reduce_vocab(min_count)
    vocab.create_binary_tree()
    return vocab
