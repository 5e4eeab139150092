import os
import sys
import urllib.request
from typing import Optional

# Download the text8 corpus and rewrite it one "sentence" per line, so the trainer can
# split it into line-aligned chunks. Saves to paravec/data/text8.txt. No ML deps.

TEXT8_URL = "http://mattmahoney.net/dc/text8.zip"
DEFAULT_PATH = os.path.join(os.path.dirname(__file__), "data", "text8.txt")
WORDS_PER_LINE = 1000


def download_text8(
    save_path: str = DEFAULT_PATH,
    max_chars: Optional[int] = None,
    words_per_line: int = WORDS_PER_LINE,
) -> str:
    """Download text8.zip, unzip in memory, and write it as lines of words_per_line words.

    Args:
        save_path: Path to write the extracted text. Defaults to paravec/data/text8.txt.
        max_chars: If set, only keep the first max_chars characters. Defaults to None.
        words_per_line: Words per output line. Defaults to 1000.

    Returns:
        The path written (save_path).

    Raises:
        RuntimeError: If the zip contains no files.
    """
    import io
    import zipfile

    req = urllib.request.Request(TEXT8_URL, headers={"User-Agent": "paravec-download/1.0"})
    with urllib.request.urlopen(req, timeout=30) as resp:
        data = resp.read()
    with zipfile.ZipFile(io.BytesIO(data), "r") as z:
        names = z.namelist()
        if not names:
            raise RuntimeError("Empty zip")
        text = z.read(names[0]).decode("utf-8", errors="replace")
    if max_chars is not None:
        text = text[:max_chars]
    write_lines(text.split(), save_path, words_per_line)
    return save_path


def write_lines(words, save_path: str, words_per_line: int = WORDS_PER_LINE) -> None:
    """Write a token stream as space-joined lines of at most words_per_line tokens."""
    if words_per_line < 1:
        raise ValueError(f"words_per_line must be >= 1, got {words_per_line}")
    os.makedirs(os.path.dirname(save_path) or ".", exist_ok=True)
    with open(save_path, "w") as f:
        for i in range(0, len(words), words_per_line):
            f.write(" ".join(words[i : i + words_per_line]) + "\n")


if __name__ == "__main__":
    path = sys.argv[1] if len(sys.argv) > 1 else DEFAULT_PATH
    # Optional: 5MB slice for quick runs
    max_chars = int(sys.argv[2]) if len(sys.argv) > 2 else None
    out = download_text8(path, max_chars=max_chars)
    print(f"Wrote {os.path.getsize(out) // 1024} KB to {out}")
