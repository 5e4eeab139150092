import argparse
import json
import os
import tempfile

import numpy as np

from paravec.config import Config
from paravec.model import ParaVecModel
from paravec.train import train

# Figures for a trained model: learning-rate curve and 2D PCA of word vectors.
# Run: python -m paravec.visualize [--file corpus.txt]

# Repeated so the run crosses a few progress checkpoints
DEMO_TEXT = (
    "the quick brown fox jumps over the lazy dog\n"
    "the dog and the fox are animals quick animals jump over lazy dogs\n"
    "brown foxes and lazy dogs the quick brown fox runs the lazy dog sleeps\n"
) * 400


def _pca2(X: np.ndarray) -> np.ndarray:
    """Project rows of X onto first 2 principal components (pure NumPy SVD).

    Args:
        X: Array of shape (n_samples, n_features).

    Returns:
        Array of shape (n_samples, 2).
    """
    X_centered = X - X.mean(axis=0)
    U, s, Vt = np.linalg.svd(X_centered, full_matrices=False)
    return (X_centered @ Vt[:2].T).astype(np.float64)


def plot_alpha(history, path: str) -> None:
    import matplotlib

    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    plt.figure(figsize=(6, 4))
    words = [h["words"] for h in history]
    alphas = [h["alpha"] for h in history]
    kwargs = {"color": "C0"}
    if len(words) <= 20:
        kwargs["marker"] = "o"
        kwargs["markersize"] = 4
    plt.plot(words, alphas, **kwargs)
    plt.xlabel("Words processed")
    plt.ylabel("Learning rate")
    plt.title("Learning-rate decay")
    plt.tight_layout()
    plt.savefig(path, dpi=120)
    plt.close()


def plot_embeddings(model: ParaVecModel, path: str, max_labels: int = 50) -> None:
    import matplotlib

    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    coords = _pca2(model.input_weights.astype(np.float64))
    words = model.vocab.words
    plt.figure(figsize=(8, 6))
    plt.scatter(coords[:, 0], coords[:, 1], alpha=0.7, s=20)
    for i in range(min(max_labels, len(words))):
        plt.annotate(words[i], (coords[i, 0], coords[i, 1]), fontsize=7, alpha=0.9)
    plt.xlabel("PC1")
    plt.ylabel("PC2")
    plt.title("Word vectors (PCA)")
    plt.tight_layout()
    plt.savefig(path, dpi=120)
    plt.close()


def main() -> None:
    """Train on demo text or a file, save the alpha curve and PCA figure to save_dir."""
    ap = argparse.ArgumentParser()
    ap.add_argument("--save_dir", type=str, default="paravec/figures")
    ap.add_argument("--file", type=str, default=None)
    ap.add_argument("--iterations", type=int, default=5)
    ap.add_argument("--dim", type=int, default=32)
    ap.add_argument("--threads", type=int, default=2)
    ap.add_argument("--seed", type=int, default=42)
    args = ap.parse_args()

    config = Config(
        dimension=args.dim,
        iterations=args.iterations,
        threads=args.threads,
        min_count=2 if args.file else 1,
        seed=args.seed,
    )
    model = ParaVecModel(config)
    if args.file and os.path.isfile(args.file):
        history = train(model, args.file)
    else:
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "demo.txt")
            with open(path, "w") as f:
                f.write(DEMO_TEXT)
            history = train(model, path, unigram_table_size=100000)

    os.makedirs(args.save_dir, exist_ok=True)
    alpha_path = os.path.join(args.save_dir, "alpha_curve.png")
    plot_alpha(history, alpha_path)
    print(f"Saved {alpha_path}")

    with open(os.path.join(args.save_dir, "alpha_history.json"), "w") as f:
        json.dump(history, f, indent=0)

    emb_path = os.path.join(args.save_dir, "embeddings_pca.png")
    plot_embeddings(model, emb_path)
    print(f"Saved {emb_path}")


if __name__ == "__main__":
    main()
