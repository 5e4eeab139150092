import argparse
import logging
import os
import tempfile
from dataclasses import replace

from paravec.config import Config
from paravec.eval import compute_accuracy, nearest
from paravec.model import ParaVecModel
from paravec.train import train
from paravec.vectors import load_model, save_model, save_sent_vectors, save_vectors, save_vectors_bin

# Entry point: train on a file (or a demo corpus), export vectors, evaluate.
# Usage: python -m paravec.run --train corpus.txt --output vectors.txt [--binary]

DEMO_TEXT = """\
the quick brown fox jumps over the lazy dog
the dog and the fox are animals
quick animals jump over lazy dogs
brown foxes and lazy dogs
the quick brown fox runs
the lazy dog sleeps
"""


def build_parser() -> argparse.ArgumentParser:
    defaults = Config()
    ap = argparse.ArgumentParser(description="Train word and sentence vectors (word2vec / paragraph vectors)")
    ap.add_argument("--train", type=str, default=None, help="Training file, one sentence per line")
    ap.add_argument("--load", type=str, default=None, help="Load a saved model instead of training")
    ap.add_argument("--save", type=str, default=None, help="Save the whole model (.npz)")
    ap.add_argument("--output", type=str, default=None, help="Write word vectors here")
    ap.add_argument("--binary", action="store_true", help="Word2vec binary format for --output")
    ap.add_argument("--policy", type=int, default=0, help="0 input, 1 concat, 2 sum, 3 output vectors")
    ap.add_argument("--sent-output", type=str, default=None, help="Write sentence vectors here")
    ap.add_argument("--accuracy", type=str, default=None, help="Analogy questions file to evaluate")
    ap.add_argument("--max-vocab", type=int, default=0, help="Restrict analogy search to top N words")

    ap.add_argument("--dimension", type=int, default=defaults.dimension)
    ap.add_argument("--window-size", type=int, default=defaults.window_size)
    ap.add_argument("--min-count", type=int, default=defaults.min_count)
    ap.add_argument("--alpha", type=float, default=defaults.alpha)
    ap.add_argument("--iterations", type=int, default=defaults.iterations)
    ap.add_argument("--threads", type=int, default=defaults.threads)
    ap.add_argument("--subsampling", type=float, default=defaults.subsampling)
    ap.add_argument("--hs", action="store_true", help="Hierarchical softmax")
    ap.add_argument("--skip-gram", action="store_true", help="Skip-gram instead of CBOW")
    ap.add_argument("--negative", type=int, default=defaults.negative)
    ap.add_argument("--sent-vector", action="store_true", help="Learn one vector per line")
    ap.add_argument("--freeze", action="store_true", help="Freeze word weights during sentence inference")
    ap.add_argument("--seed", type=int, default=None)
    ap.add_argument("--verbose", action="store_true")
    return ap


def config_from_args(args: argparse.Namespace) -> Config:
    return Config(
        dimension=args.dimension,
        window_size=args.window_size,
        min_count=args.min_count,
        alpha=args.alpha,
        iterations=args.iterations,
        threads=args.threads,
        subsampling=args.subsampling,
        hierarchical_softmax=args.hs,
        skip_gram=args.skip_gram,
        negative=args.negative,
        sent_vector=args.sent_vector,
        freeze=args.freeze,
        verbose=args.verbose,
        seed=args.seed,
    )


def main(argv=None):
    """Train or load a model, then export and evaluate as requested."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.load:
        model = load_model(args.load)
    else:
        config = config_from_args(args)
        if args.train:
            model = ParaVecModel(config)
            train(model, args.train)
        else:
            # Demo corpus is tiny: keep every word
            model = ParaVecModel(replace(config, min_count=1))
            with tempfile.TemporaryDirectory() as tmp:
                path = os.path.join(tmp, "demo.txt")
                with open(path, "w") as f:
                    f.write(DEMO_TEXT)
                train(model, path)

    print(f"Vocab size {len(model.vocab)}, training words {model.training_words}")

    if args.save:
        save_model(model, args.save)
    if args.output:
        if args.binary:
            save_vectors_bin(model, args.output, args.policy)
        else:
            save_vectors(model, args.output, args.policy)
    if args.sent_output:
        save_sent_vectors(model, args.sent_output)

    if args.accuracy:
        with open(args.accuracy) as f:
            results = compute_accuracy(model, f, args.max_vocab, args.policy)
        for section, (correct, total) in results.items():
            if total:
                print(f"  {section}: {correct}/{total} = {100.0 * correct / total:.1f}%")
    else:
        for word in model.vocab.words[:3]:
            nn_str = ", ".join(f"{w}({s:.3f})" for w, s in nearest(model, word, k=5, policy=args.policy))
            print(f"  '{word}' -> {nn_str}")


if __name__ == "__main__":
    main()
