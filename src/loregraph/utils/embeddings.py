"""Embedding utilities for loregraph.

Embeddings are computed by an external pipeline; this module only converts
them to and from their stored form and ranks them by cosine distance.
"""

import heapq
from typing import List, Sequence

import numpy as np


def embedding_to_blob(embedding: Sequence[float]) -> bytes:
    """Serialize an embedding as a float32 blob.

    Args:
        embedding: Embedding vector

    Returns:
        Raw bytes
    """
    return np.asarray(embedding, dtype=np.float32).tobytes()


def blob_to_embedding(blob: bytes) -> List[float]:
    """Deserialize a float32 blob into a list of floats.

    Args:
        blob: Raw bytes

    Returns:
        Embedding vector
    """
    return np.frombuffer(blob, dtype=np.float32).tolist()


def blobs_to_matrix(blobs: Sequence[bytes], dimension: int) -> np.ndarray:
    """Stack stored blobs into an ``(n, dimension)`` float32 matrix."""
    if not blobs:
        return np.empty((0, dimension), dtype=np.float32)
    return np.frombuffer(b"".join(blobs), dtype=np.float32).reshape(len(blobs), dimension)


def is_finite(embedding: Sequence[float]) -> bool:
    """Check that every component stays finite once stored as float32.

    Values beyond the float32 range (about 3.4e38) overflow to infinity in the
    stored blob, so they are rejected along with NaN and infinities.
    """
    with np.errstate(over="ignore"):
        stored = np.asarray(embedding, dtype=np.float32)
    return bool(np.all(np.isfinite(stored)))


def _normalize(matrix: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    # Avoid division by zero; zero vectors stay zero
    norms[norms == 0] = 1
    return matrix / norms


def cosine_distances(query: Sequence[float], matrix: np.ndarray) -> np.ndarray:
    """Compute cosine distances between a query and each row of a matrix.

    Distance is ``1 - cosine_similarity`` and lies in ``[0, 2]``. A zero vector
    on either side has similarity 0, hence distance 1.

    Args:
        query: Query embedding
        matrix: Candidate embeddings, one per row

    Returns:
        Array of distances, one per row
    """
    if matrix.shape[0] == 0:
        return np.empty(0, dtype=np.float64)

    query_vector = np.asarray(query, dtype=np.float64).reshape(1, -1)
    similarities = _normalize(matrix.astype(np.float64)) @ _normalize(query_vector)[0]
    return np.clip(1.0 - similarities, 0.0, 2.0)


def rank_by_distance(ids: Sequence[str], distances: np.ndarray, top_k: int) -> List[int]:
    """Order candidate positions by ascending distance, ties broken by id.

    Args:
        ids: Candidate identifiers
        distances: Distance per candidate
        top_k: Maximum number of positions to return

    Returns:
        Positions of the best candidates, closest first
    """
    return heapq.nsmallest(top_k, range(len(ids)), key=lambda i: (float(distances[i]), ids[i]))
