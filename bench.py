"""Benchmark encode_batch() and decode_batch() on a slice of the Sci-Fi Gutenberg dataset.

Outputs a row with the columns:
  Corpus Size | Encoding | Load Time | Encoding Throughput |
  Decoding Throughput | Compression Ratio | Size Reduction

With --check-tiktoken the token ids are compared against tiktoken's.
"""

import argparse
import time

from datasets import load_dataset

import ranktok

HF_DATASET = "stevez80/Sci-Fi-Books-gutenberg"


def load_corpus(num_docs: int | None) -> list[str]:
    """Load up to `num_docs` documents via dataset indexing; full dataset when None."""
    print(f"Loading {HF_DATASET} (non-streaming) …")
    ds = load_dataset(HF_DATASET, split="train")
    if num_docs is not None:
        return ds[:num_docs]["text"]
    return ds["text"]


def load_encoding(name: str) -> tuple[ranktok.Encoding, float]:
    """Return the named encoding along with the seconds spent loading it."""
    start = time.perf_counter()
    enc = ranktok.get_encoding(name)
    return enc, time.perf_counter() - start


def check_parity(name: str, docs: list[str], encoded: list[list[int]]) -> int:
    """Count documents whose ids differ from tiktoken's for the same encoding."""
    import tiktoken

    reference = tiktoken.get_encoding(name)
    mismatches = 0
    for doc, tokens in zip(docs, encoded):
        if reference.encode_ordinary(doc) != tokens:
            mismatches += 1
    return mismatches


def main() -> None:
    """Run the encode/decode benchmark and print a markdown table row."""
    parser = argparse.ArgumentParser(
        description="Benchmark ranktok encode_batch() and decode_batch()."
    )
    parser.add_argument(
        "--num-docs",
        type=int,
        default=None,
        help="Number of documents to encode (default: full dataset).",
    )
    parser.add_argument(
        "--encoding",
        type=str,
        default="cl100k_base",
        choices=ranktok.list_encodings(),
        help="Vocabulary to benchmark (default: cl100k_base).",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Encoding threads (default: CPU count).",
    )
    parser.add_argument(
        "--check-tiktoken",
        action="store_true",
        help="Compare token ids against tiktoken (requires the bench extra).",
    )
    args = parser.parse_args()

    docs = load_corpus(args.num_docs)
    if not docs:
        raise RuntimeError("No documents loaded from dataset.")

    total_bytes = sum(len(d.encode("utf-8")) for d in docs)
    corpus_mb = total_bytes / (1024 * 1024)

    enc, load_secs = load_encoding(args.encoding)

    # --- Encoding ---
    t0 = time.perf_counter()
    encoded = enc.encode_batch(docs, num_workers=args.workers)
    encode_elapsed = time.perf_counter() - t0
    encode_mbps = total_bytes / encode_elapsed / (1024 * 1024)

    # --- Decoding ---
    t0 = time.perf_counter()
    enc.decode_batch(encoded, errors="replace")
    decode_elapsed = time.perf_counter() - t0
    total_tokens = sum(len(seq) for seq in encoded)
    decode_mtps = total_tokens / decode_elapsed / 1_000_000

    # --- Compression stats ---
    compression_ratio = total_bytes / total_tokens
    size_reduction = (1 - 1 / compression_ratio) * 100

    info = enc.cache_info()
    if info is not None:
        print(f"Piece cache: {info.size:,} entries, {info.hits:,} hits, {info.misses:,} misses")

    # --- Output ---
    print()
    header = (
        f"| {'Corpus Size':22} | {'Encoding':12} | {'Load Time':12} "
        f"| {'Encoding Throughput':29} | {'Decoding Throughput':19} "
        f"| {'Compression Ratio':17} | {'Size Reduction':14} |"
    )
    sep = (
        f"| {'-' * 22} | {'-' * 12} | {'-' * 12} "
        f"| {'-' * 29} | {'-' * 19} "
        f"| {'-' * 17} | {'-' * 14} |"
    )
    row = (
        f"| {f'{corpus_mb:.2f} MB':22} | {enc.name:12} | {f'{load_secs:.1f} secs':12} "
        f"| {f'{encode_mbps:.2f} MB/sec':29} | {f'{decode_mtps:.1f}M tokens/sec':19} "
        f"| {f'{compression_ratio:.2f}x':17} | {f'{size_reduction:.1f}%':14} |"
    )
    print(header)
    print(sep)
    print(row)
    print()

    if args.check_tiktoken:
        mismatches = check_parity(args.encoding, docs, encoded)
        print(f"tiktoken parity: {len(docs) - mismatches}/{len(docs)} documents identical")


if __name__ == "__main__":
    main()
