from paravec.config import Config
from paravec.data import UnigramTable, chunkify
from paravec.model import ParaVecModel, sigmoid
from paravec.train import train
from paravec.vocab import UNK, HuffmanNode, UnknownWordError, Vocabulary, build_vocab

# Word2vec and paragraph vectors in NumPy: Huffman-coded hierarchical softmax, negative
# sampling, CBOW / skip-gram, trained by lock-free worker threads over file chunks.

__all__ = [
    "Config",
    "HuffmanNode",
    "ParaVecModel",
    "UNK",
    "UnigramTable",
    "UnknownWordError",
    "Vocabulary",
    "build_vocab",
    "chunkify",
    "sigmoid",
    "train",
]
