"""polartext: fastText-style word vectors, text classification and
label-polarized word vectors in pure Python.

Implements four training objectives over one shared pair of matrices:

    cbow      Bag of context subwords   → centre word
    sg        Centre-word subwords      → each context word (skip-gram)
    sup       Line words + word n-grams → one of the line's labels
    pwv       Skip-gram plus a per-word polarization step that pulls each
              word row towards the indicator of the labels it was seen
              under (dim == number of labels)

and three output layers (``softmax``, hierarchical ``hs``, negative
sampling ``ns``).  Worker threads update the shared matrices without
locks ("hogwild"); the numba kernels run with ``nogil=True`` so the
threads really do overlap.

::

    model = PolarText.train("train.txt", model="sup", epoch=25)
    model.test("test.txt")                   # → (N, P@1, R@1)
    model.predict("the food was great")      # → [("__label__pos", 0.97)]

    vecs = PolarText.train("corpus.txt", model="sg", dim=50)
    vecs.get_vector("king")                  # → np.ndarray (50,)

Requires only **numpy** and **numba** (no C compiler, no scipy).
"""

from __future__ import annotations

import argparse
import heapq
import math
import os
import sys
import tempfile
import threading
import time
from dataclasses import dataclass, field
from typing import Iterator

import numpy as np
from numba import njit


MAX_VOCAB_SIZE = 30_000_000
MAX_LINE_SIZE = 1024
NEGATIVE_TABLE_SIZE = 10_000_000
MAX_SIGMOID = 8.0

EOS = "</s>"
BOW = "<"
EOW = ">"

WORD, LABEL = 0, 1

MODEL_CODES = {"cbow": 1, "sg": 2, "sup": 3, "pwv": 4}
LOSS_CODES = {"hs": 1, "ns": 2, "softmax": 3}
LOSS_HS, LOSS_NS, LOSS_SOFTMAX = 1, 2, 3

_MINSTD_M = 2147483647
_U64 = 0xFFFFFFFFFFFFFFFF


# ── public helpers ────────────────────────────────────────────────────────────

def iter_lines(path: str) -> Iterator[list[str]]:
    """Yield tokenized lines from a text file."""
    with open(path, "rb") as f:
        for raw in f:
            tokens = _split(raw)
            if tokens:
                yield tokens


def tokenize(text: str) -> list[str]:
    """Split *text* exactly as the corpus reader does."""
    return _split(_encode(text))


def _split(raw: bytes) -> list[str]:
    """Split one raw line on ASCII whitespace and NUL."""
    return [t.decode("utf-8", "surrogateescape")
            for t in raw.replace(b"\0", b" ").split()]


def _encode(word: str) -> bytes:
    return word.encode("utf-8", "surrogateescape")


# ── configuration ─────────────────────────────────────────────────────────────


@dataclass
class Args:
    input: str          = ""
    output: str         = ""
    model: str          = "sg"
    loss: str           = "ns"
    lr: float           = 0.05
    dim: int            = 100
    ws: int             = 5
    epoch: int          = 5
    min_count: int      = 5
    neg: int            = 5
    word_ngrams: int    = 1
    bucket: int         = 2_000_000
    minn: int           = 3
    maxn: int           = 6
    thread: int         = 12
    lr_update_rate: int = 100
    t: float            = 1e-4
    label: str          = "__label__"
    verbose: int        = 2
    seed: int           = 0

    # persisted int32 fields, in file order
    _INT_FIELDS = ("dim", "ws", "epoch", "min_count", "neg", "word_ngrams",
                   "loss", "model", "bucket", "minn", "maxn",
                   "lr_update_rate")

    def __post_init__(self):
        if self.model not in MODEL_CODES:
            raise ValueError(f"unknown model {self.model!r}")
        if self.loss not in LOSS_CODES:
            raise ValueError(f"unknown loss {self.loss!r}")

    @classmethod
    def for_model(cls, model: str = "sg", **overrides) -> Args:
        """Defaults for *model*, with keyword overrides applied on top."""
        defaults = {}
        if model == "sup":
            defaults = dict(lr=0.1, min_count=1, loss="softmax",
                            minn=0, maxn=0)
        defaults.update(overrides)
        args = cls(model=model, **defaults)
        if args.word_ngrams <= 1 and args.maxn == 0:
            args.bucket = 0
        return args

    @property
    def supervised(self) -> bool:
        return self.model == "sup"

    def save(self, f):
        values = []
        for name in self._INT_FIELDS:
            v = getattr(self, name)
            if name == "loss":
                v = LOSS_CODES[v]
            elif name == "model":
                v = MODEL_CODES[v]
            values.append(v)
        _write(f, "<i4", *values)
        _write(f, "<f8", self.t)

    @classmethod
    def load(cls, reader: _Reader) -> Args:
        ints = reader.read("<i4", len(cls._INT_FIELDS))
        kw = {name: int(v) for name, v in zip(cls._INT_FIELDS, ints)}
        try:
            kw["loss"] = {v: k for k, v in LOSS_CODES.items()}[kw["loss"]]
            kw["model"] = {v: k for k, v in MODEL_CODES.items()}[kw["model"]]
        except KeyError as e:
            raise ValueError(f"corrupt model header: bad code {e}") from None
        kw["t"] = float(reader.read("<f8")[0])
        return cls(**kw)


# ── binary codec helpers ──────────────────────────────────────────────────────


def _write(f, dtype, *values):
    f.write(np.array(values, dtype=dtype).tobytes())


class _Reader:
    """Sequential reader over an in-memory model file."""

    __slots__ = ("buf", "pos")

    def __init__(self, buf: bytes):
        self.buf, self.pos = buf, 0

    def read(self, dtype, count: int = 1) -> np.ndarray:
        dt = np.dtype(dtype)
        nbytes = dt.itemsize * count
        if self.pos + nbytes > len(self.buf):
            raise ValueError("truncated model file")
        a = np.frombuffer(self.buf, dtype=dt, count=count, offset=self.pos)
        self.pos += nbytes
        return a

    def read_cstring(self) -> bytes:
        end = self.buf.find(b"\0", self.pos)
        if end < 0:
            raise ValueError("truncated model file")
        s = self.buf[self.pos:end]
        self.pos = end + 1
        return s


# ── random stream ─────────────────────────────────────────────────────────────


@njit(cache=True, nogil=True)
def _next_rand(rng):
    rng[0] = (rng[0] * np.int64(48271)) % np.int64(2147483647)
    return rng[0]


@njit(cache=True, nogil=True)
def _rand_int(rng, lo, hi):
    """Uniform integer in [lo, hi]."""
    return lo + _next_rand(rng) % (hi - lo + 1)


class MinstdRand:
    """Park–Miller ``minstd_rand`` stream; state lives in a 1-element array
    so compiled kernels can advance it in place."""

    __slots__ = ("state",)

    def __init__(self, seed: int = 1):
        s = seed % _MINSTD_M
        self.state = np.array([s if s != 0 else 1], dtype=np.int64)

    def __call__(self) -> int:
        return int(_next_rand(self.state))

    def uniform(self) -> float:
        """Uniform float in [0, 1)."""
        return (self() - 1) / (_MINSTD_M - 1)

    def randint(self, lo: int, hi: int) -> int:
        return int(_rand_int(self.state, lo, hi))


def _thread_seed(seed: int, thread_id: int) -> int:
    # seed 0 maps to state 1, so worker ids start at 1
    return seed + thread_id + 1


# ── deterministic hash (matches C++ fasttext) ────────────────────────────────


@njit(cache=True, nogil=True)
def _fnv_step(h, b):
    sb = np.uint32(b) if b < 128 else np.uint32(np.int32(np.int8(b)))
    return np.uint32((h ^ sb) * np.uint32(16777619))


@njit(cache=True)
def _fnv1a_bytes(data):
    """FNV-1a 32-bit over a uint8 array with signed-char XOR."""
    h = np.uint32(2166136261)
    for i in range(len(data)):
        h = _fnv_step(h, data[i])
    return h


def fnv1a(word: str) -> int:
    return int(_fnv1a_bytes(np.frombuffer(_encode(word), dtype=np.uint8)))


@njit(cache=True)
def _compute_ngrams(data, minn, maxn, bucket, offset):
    """Character n-gram ids of a boundary-wrapped word.

    UTF-8 continuation bytes (10xxxxxx) stay with their character and
    never start an n-gram.  The FNV hash is extended byte by byte, so
    every prefix of an n-gram costs one step.
    """
    n_bytes = len(data)
    out = np.empty(n_bytes * max(maxn, 0) + 1, np.int32)
    k = 0
    if bucket <= 0:
        return out[:0]
    for i in range(n_bytes):
        if (data[i] & 0xC0) == 0x80:
            continue
        h = np.uint32(2166136261)
        j = i
        n = 1
        while j < n_bytes and n <= maxn:
            h = _fnv_step(h, data[j])
            j += 1
            while j < n_bytes and (data[j] & 0xC0) == 0x80:
                h = _fnv_step(h, data[j])
                j += 1
            if n >= minn:
                out[k] = offset + np.int64(h % np.uint32(bucket))
                k += 1
            n += 1
    return out[:k]


# ── vector / matrix primitives ───────────────────────────────────────────────


class Vector:
    """Fixed-length float32 buffer."""

    __slots__ = ("data",)

    def __init__(self, m: int, indices=None):
        self.data = np.zeros(m, np.float32)
        if indices is not None:
            for i in indices:
                assert 0 <= i < m, f"index {i} outside vector of size {m}"
                self.data[i] = 1.0

    def __len__(self) -> int:
        return len(self.data)

    def __getitem__(self, i):
        return self.data[i]

    def zero(self):
        self.data.fill(0.0)

    def ones(self):
        self.data.fill(1.0)

    def mul(self, a: float):
        self.data *= np.float32(a)

    def add_row(self, A: Matrix, i: int, a: float = 1.0):
        assert 0 <= i < A.m, f"row {i} outside matrix with {A.m} rows"
        assert len(self.data) == A.n
        self.data += np.float32(a) * A.data[i]

    def mul_matrix(self, A: Matrix, vec: Vector):
        """self = A · vec"""
        assert A.m == len(self.data)
        assert A.n == len(vec.data)
        np.dot(A.data, vec.data, out=self.data)

    def argmax(self) -> int:
        return int(np.argmax(self.data))

    def __str__(self) -> str:
        return " ".join(f"{x:.5g}" for x in self.data)


class Matrix:
    """Dense row-major float32 matrix; never resized after construction."""

    __slots__ = ("data",)

    def __init__(self, m: int = 0, n: int = 0):
        self.data = np.zeros((m, n), np.float32)

    @property
    def m(self) -> int:
        return self.data.shape[0]

    @property
    def n(self) -> int:
        return self.data.shape[1]

    def zero(self):
        self.data.fill(0.0)

    def uniform(self, a: float, seed: int = 0, chunk: int = 65536):
        rng = np.random.RandomState(seed)
        for start in range(0, self.m, chunk):
            stop = min(start + chunk, self.m)
            self.data[start:stop] = rng.uniform(-a, a, (stop - start, self.n))

    def add_row(self, vec: Vector, i: int, a: float = 1.0):
        assert 0 <= i < self.m, f"row {i} outside matrix with {self.m} rows"
        assert len(vec) == self.n
        self.data[i] += np.float32(a) * vec.data

    def dot_row(self, vec: Vector, i: int) -> float:
        assert 0 <= i < self.m, f"row {i} outside matrix with {self.m} rows"
        return float(np.dot(self.data[i], vec.data))

    def save(self, f):
        f.write(np.ascontiguousarray(self.data, dtype="<f4").tobytes())

    @classmethod
    def load(cls, reader: _Reader, m: int, n: int) -> Matrix:
        mat = cls()
        mat.data = reader.read("<f4", m * n).reshape(m, n).astype(np.float32)
        return mat


# ── dictionary ───────────────────────────────────────────────────────────────


@dataclass
class Entry:
    word: str
    count: int
    type: int
    subwords: list[int] = field(default_factory=list)
    labels: list[str]   = field(default_factory=list)


class Dictionary:
    """Open-addressing token table: words in [0, nwords), labels after.

    ``labels`` of a word entry record every label that was the most
    recent label token seen anywhere earlier in the corpus when the word
    occurred, so the association follows corpus order, not line bounds.
    """

    def __init__(self, args: Args, capacity: int = MAX_VOCAB_SIZE):
        self.args = args
        self.capacity = capacity
        self.word2int = np.full(capacity, -1, dtype=np.int32)
        self.words: list[Entry] = []
        self.size = 0
        self.nwords = 0
        self.nlabels = 0
        self.ntokens = 0
        self.pdiscard = np.empty(0, np.float32)
        self._cur_label: str | None = None

    # ── hash table ────────────────────────────────────────────────────────

    def find(self, w: str) -> int:
        h = fnv1a(w) % self.capacity
        while (self.word2int[h] != -1
               and self.words[self.word2int[h]].word != w):
            h = (h + 1) % self.capacity
        return h

    def add(self, w: str):
        h = self.find(w)
        self.ntokens += 1
        wid = int(self.word2int[h])
        if wid == -1:
            if w.startswith(self.args.label):
                self._cur_label = w
                e = Entry(w, 1, LABEL)
            else:
                e = Entry(w, 1, WORD)
                if self._cur_label is not None:
                    e.labels.append(self._cur_label)
            self.words.append(e)
            self.word2int[h] = self.size
            self.size += 1
            return
        e = self.words[wid]
        if e.type == LABEL:
            self._cur_label = e.word
        elif self._cur_label is not None and self._cur_label not in e.labels:
            e.labels.append(self._cur_label)
        e.count += 1

    def threshold(self, t: int):
        """Drop words seen fewer than *t* times and rebuild the table."""
        self.words.sort(key=lambda e: (e.type, -e.count))
        self.words = [e for e in self.words
                      if e.type == LABEL or e.count >= t]
        self.size = self.nwords = self.nlabels = 0
        self.word2int.fill(-1)
        for e in self.words:
            self.word2int[self.find(e.word)] = self.size
            self.size += 1
            if e.type == WORD:
                self.nwords += 1
            else:
                self.nlabels += 1

    # ── corpus scan ───────────────────────────────────────────────────────

    def read_from_file(self, f):
        """Count every token of binary stream *f* (one ``</s>`` per newline)."""
        verbose = self.args.verbose
        min_threshold = 1
        for raw in f:
            tokens = _split(raw)
            if raw.endswith(b"\n"):
                tokens.append(EOS)
            for w in tokens:
                self.add(w)
                if self.ntokens % 1_000_000 == 0 and verbose > 1:
                    print(f"\rRead {self.ntokens // 1_000_000}M words",
                          end="", file=sys.stderr)
                if self.size > 0.75 * self.capacity:
                    self.threshold(min_threshold)
                    min_threshold += 1
        if verbose > 0:
            print(f"\rRead {self.ntokens // 1_000_000}M words",
                  file=sys.stderr)
        self.threshold(self.args.min_count)
        self.init_table_discard()
        self.init_ngrams()
        if verbose > 0:
            print(f"Number of words:  {self.nwords}", file=sys.stderr)
            print(f"Number of labels: {self.nlabels}", file=sys.stderr)
        if self.size == 0:
            raise ValueError("Empty vocabulary. Try a smaller -minCount value.")

    def init_table_discard(self):
        counts = np.array([e.count for e in self.words], dtype=np.float64)
        if self.ntokens > 0:
            f = counts / self.ntokens
            r = self.args.t / f
            self.pdiscard = (np.sqrt(r) + r).astype(np.float32)
        else:
            self.pdiscard = np.empty(0, np.float32)

    def init_ngrams(self):
        for i, e in enumerate(self.words):
            e.subwords = [i] + self.compute_ngrams(BOW + e.word + EOW)

    def compute_ngrams(self, word: str) -> list[int]:
        a = self.args
        data = np.frombuffer(_encode(word), dtype=np.uint8)
        return _compute_ngrams(data, a.minn, a.maxn, a.bucket,
                               self.nwords).tolist()

    # ── lookups ───────────────────────────────────────────────────────────

    def get_id(self, w: str) -> int:
        return int(self.word2int[self.find(w)])

    def get_type(self, i: int) -> int:
        assert 0 <= i < self.size
        return self.words[i].type

    def get_word(self, i: int) -> str:
        assert 0 <= i < self.size
        return self.words[i].word

    def get_label(self, lid: int) -> str:
        assert 0 <= lid < self.nlabels
        return self.words[lid + self.nwords].word

    def get_counts(self, kind: int) -> np.ndarray:
        return np.array([e.count for e in self.words if e.type == kind],
                        dtype=np.int64)

    def get_ngrams(self, i: int) -> list[int]:
        assert 0 <= i < self.nwords
        return self.words[i].subwords

    def get_subwords(self, word: str) -> list[int]:
        """Subword ids of *word*, computed on the fly when it is unknown."""
        i = self.get_id(word)
        if i >= 0:
            return self.words[i].subwords
        return self.compute_ngrams(BOW + word + EOW)

    def get_labels(self, i: int) -> list[int]:
        """Sorted label-relative ids recorded for word *i*."""
        assert 0 <= i < self.nwords
        lids = []
        for label in self.words[i].labels:
            wid = self.get_id(label)
            assert wid >= self.nwords, f"{label!r} is not a label"
            lids.append(wid - self.nwords)
        return sorted(lids)

    def subword_index(self) -> tuple[np.ndarray, np.ndarray]:
        """Subword lists of all words as (offsets, ids) for the kernels."""
        return _pack([e.subwords for e in self.words[:self.nwords]])

    def label_index(self) -> tuple[np.ndarray, np.ndarray]:
        return _pack([self.get_labels(i) for i in range(self.nwords)])

    # ── line reading ──────────────────────────────────────────────────────

    def discard(self, i: int, rand: float) -> bool:
        assert 0 <= i < self.nwords
        if self.args.supervised:
            return False
        return rand > self.pdiscard[i]

    def parse_line(self, tokens: list[str], rng: MinstdRand,
                   discard: bool = True
                   ) -> tuple[list[int], list[int], int]:
        """Resolve *tokens* → (word ids, label-relative ids, tokens read).

        With ``discard=False`` no word is subsampled and *rng* is untouched.
        """
        words: list[int] = []
        labels: list[int] = []
        ntokens = 0
        cap = not self.args.supervised
        for token in tokens:
            if token == EOS:
                break
            wid = self.get_id(token)
            if wid < 0:
                continue
            ntokens += 1
            if self.words[wid].type == WORD:
                if not discard or not self.discard(wid, rng.uniform()):
                    words.append(wid)
            else:
                labels.append(wid - self.nwords)
            if cap and len(words) > MAX_LINE_SIZE:
                break
        return words, labels, ntokens

    def get_line(self, f, rng: MinstdRand):
        """Read one line of binary stream *f*, rewinding at end of file."""
        raw = f.readline()
        if not raw:
            f.seek(0)
            raw = f.readline()
        return self.parse_line(_split(raw), rng)

    def add_ngrams(self, line: list[int], n: int):
        """Append hashed word n-gram ids (n ≥ 2) to *line* in place."""
        bucket = self.args.bucket
        if bucket <= 0:
            return
        line_size = len(line)
        for i in range(line_size):
            h = line[i]
            for j in range(i + 1, min(line_size, i + n)):
                h = (h * 116049371 + line[j]) & _U64
                line.append(self.nwords + h % bucket)

    # ── persistence ───────────────────────────────────────────────────────

    def save(self, f):
        _write(f, "<i4", self.size, self.nwords, self.nlabels)
        _write(f, "<i8", self.ntokens)
        for e in self.words:
            f.write(_encode(e.word) + b"\0")
            _write(f, "<i8", e.count)
            _write(f, "<i4", e.type)

    @classmethod
    def load(cls, reader: _Reader, args: Args,
             capacity: int = MAX_VOCAB_SIZE) -> Dictionary:
        d = cls(args, capacity)
        size, nwords, nlabels = (int(v) for v in reader.read("<i4", 3))
        d.ntokens = int(reader.read("<i8")[0])
        for i in range(size):
            word = reader.read_cstring().decode("utf-8", "surrogateescape")
            count = int(reader.read("<i8")[0])
            kind = int(reader.read("<i4")[0])
            if kind not in (WORD, LABEL):
                raise ValueError(f"corrupt dictionary entry {word!r}")
            d.words.append(Entry(word, count, kind))
            d.word2int[d.find(word)] = i
        d.size, d.nwords, d.nlabels = size, nwords, nlabels
        if nwords + nlabels != size:
            raise ValueError("corrupt dictionary header")
        d.init_table_discard()
        d.init_ngrams()
        return d


def _pack(lists: list[list[int]]) -> tuple[np.ndarray, np.ndarray]:
    ptr = np.zeros(len(lists) + 1, np.int64)
    ptr[1:] = np.cumsum([len(x) for x in lists]) if lists else []
    ids = np.fromiter((i for x in lists for i in x), dtype=np.int32,
                      count=int(ptr[-1]))
    return ptr, ids


# ── output tables ────────────────────────────────────────────────────────────


@dataclass
class HuffmanTree:
    parent: np.ndarray
    left: np.ndarray
    right: np.ndarray
    count: np.ndarray
    binary: np.ndarray
    path_ptr: np.ndarray    # leaf i's path is path_nodes[path_ptr[i]:path_ptr[i+1]]
    path_nodes: np.ndarray  # internal-node output rows, leaf → root
    path_codes: np.ndarray

    @property
    def osz(self) -> int:
        return len(self.path_ptr) - 1

    def code_length(self, i: int) -> int:
        return int(self.path_ptr[i + 1] - self.path_ptr[i])


@njit(cache=True)
def _build_tree(counts):
    osz = len(counts)
    n = 2 * osz - 1
    parent = np.full(n, -1, np.int32)
    left = np.full(n, -1, np.int32)
    right = np.full(n, -1, np.int32)
    count = np.full(n, np.int64(1000000000000000), np.int64)
    binary = np.zeros(n, np.int8)
    for i in range(osz):
        count[i] = counts[i]

    # leaves arrive sorted by decreasing count: walk them from the back
    leaf = osz - 1
    node = osz
    for i in range(osz, n):
        mini0 = 0
        mini1 = 0
        for j in range(2):
            if leaf >= 0 and count[leaf] < count[node]:
                m = leaf
                leaf -= 1
            else:
                m = node
                node += 1
            if j == 0:
                mini0 = m
            else:
                mini1 = m
        left[i] = mini0
        right[i] = mini1
        count[i] = count[mini0] + count[mini1]
        parent[mini0] = i
        parent[mini1] = i
        binary[mini1] = 1

    path_ptr = np.zeros(osz + 1, np.int64)
    for i in range(osz):
        depth = 0
        j = i
        while parent[j] != -1:
            depth += 1
            j = parent[j]
        path_ptr[i + 1] = path_ptr[i] + depth
    path_nodes = np.empty(path_ptr[osz], np.int32)
    path_codes = np.empty(path_ptr[osz], np.int8)
    for i in range(osz):
        k = path_ptr[i]
        j = i
        while parent[j] != -1:
            path_nodes[k] = parent[j] - osz
            path_codes[k] = binary[j]
            k += 1
            j = parent[j]
    return parent, left, right, count, binary, path_ptr, path_nodes, path_codes


def build_tree(counts) -> HuffmanTree:
    """Huffman tree over *counts* (sorted by decreasing frequency)."""
    counts = np.asarray(counts, dtype=np.int64)
    assert len(counts) > 0, "cannot build a tree without output classes"
    return HuffmanTree(*_build_tree(counts))


def init_table_negatives(counts, seed: int = 0,
                         size: int = NEGATIVE_TABLE_SIZE) -> np.ndarray:
    """Shuffled table where class i fills ~count[i]^0.75 of *size* slots."""
    pw = np.power(np.asarray(counts, dtype=np.float64), 0.75)
    z = pw.sum()
    reps = np.ceil(pw * size / z).astype(np.int64)
    negatives = np.repeat(np.arange(len(pw), dtype=np.int32), reps)
    np.random.RandomState(seed).shuffle(negatives)
    return negatives


# ── training kernels ─────────────────────────────────────────────────────────
#
# An engine's state is passed as one tuple:
#   (wi, wo, hidden, output, grad, stats, negatives, negpos,
#    path_ptr, path_nodes, path_codes, loss_kind, neg)
# wi/wo are the shared matrices; everything else is private to the engine.


@njit(cache=True, nogil=True)
def _sigmoid(x):
    if x < -MAX_SIGMOID:
        return 0.0
    if x > MAX_SIGMOID:
        return 1.0
    return 1.0 / (1.0 + math.exp(-x))


@njit(cache=True, nogil=True)
def _log(x):
    return math.log(x + 1e-5)


@njit(fastmath=True, cache=True, nogil=True)
def _compute_hidden(wi, ids, hidden):
    dim = hidden.shape[0]
    for d in range(dim):
        hidden[d] = np.float32(0.0)
    n = len(ids)
    for k in range(n):
        row = ids[k]
        for d in range(dim):
            hidden[d] += wi[row, d]
    if n > 0:
        inv = np.float32(1.0 / n)
        for d in range(dim):
            hidden[d] *= inv


@njit(fastmath=True, cache=True, nogil=True)
def _binary_logistic(wo, hidden, grad, target, label, lr):
    dim = hidden.shape[0]
    s = np.float32(0.0)
    for d in range(dim):
        s += wo[target, d] * hidden[d]
    score = _sigmoid(s)
    alpha = lr * ((1.0 if label else 0.0) - score)
    for d in range(dim):
        grad[d] += alpha * wo[target, d]
        wo[target, d] += alpha * hidden[d]
    if label:
        return -_log(score)
    return -_log(1.0 - score)


@njit(cache=True, nogil=True)
def _get_negative(negatives, negpos, target):
    size = len(negatives)
    for _ in range(size):
        negative = negatives[negpos[0]]
        negpos[0] = (negpos[0] + 1) % size
        if negative != target:
            return negative
    return target


@njit(fastmath=True, cache=True, nogil=True)
def _negative_sampling(wo, hidden, grad, negatives, negpos, target, neg, lr):
    for d in range(grad.shape[0]):
        grad[d] = np.float32(0.0)
    loss = _binary_logistic(wo, hidden, grad, target, True, lr)
    for _ in range(neg):
        negative = _get_negative(negatives, negpos, target)
        if negative != target:
            loss += _binary_logistic(wo, hidden, grad, negative, False, lr)
    return loss


@njit(fastmath=True, cache=True, nogil=True)
def _hierarchical_softmax(wo, hidden, grad, path_ptr, path_nodes, path_codes,
                          target, lr):
    for d in range(grad.shape[0]):
        grad[d] = np.float32(0.0)
    loss = 0.0
    for i in range(path_ptr[target], path_ptr[target + 1]):
        loss += _binary_logistic(wo, hidden, grad, path_nodes[i],
                                 path_codes[i] == 1, lr)
    return loss


@njit(fastmath=True, cache=True, nogil=True)
def _compute_output_softmax(wo, hidden, output):
    osz, dim = wo.shape
    mx = -np.inf
    for i in range(osz):
        s = np.float32(0.0)
        for d in range(dim):
            s += wo[i, d] * hidden[d]
        output[i] = s
        if s > mx:
            mx = s
    z = 0.0
    for i in range(osz):
        output[i] = math.exp(output[i] - mx)
        z += output[i]
    for i in range(osz):
        output[i] /= z


@njit(fastmath=True, cache=True, nogil=True)
def _softmax(wo, hidden, output, grad, target, lr):
    osz, dim = wo.shape
    for d in range(dim):
        grad[d] = np.float32(0.0)
    _compute_output_softmax(wo, hidden, output)
    for i in range(osz):
        label = 1.0 if i == target else 0.0
        alpha = lr * (label - output[i])
        for d in range(dim):
            grad[d] += alpha * wo[i, d]
            wo[i, d] += alpha * hidden[d]
    return -_log(output[target])


@njit(fastmath=True, cache=True, nogil=True)
def _update(state, ids, target, lr):
    (wi, wo, hidden, output, grad, stats, negatives, negpos,
     path_ptr, path_nodes, path_codes, loss_kind, neg) = state
    assert target >= 0 and target < wo.shape[0]
    n = len(ids)
    if n == 0:
        return
    _compute_hidden(wi, ids, hidden)
    if loss_kind == LOSS_NS:
        loss = _negative_sampling(wo, hidden, grad, negatives, negpos,
                                  target, neg, lr)
    elif loss_kind == LOSS_HS:
        loss = _hierarchical_softmax(wo, hidden, grad, path_ptr, path_nodes,
                                     path_codes, target, lr)
    else:
        loss = _softmax(wo, hidden, output, grad, target, lr)
    stats[0] += loss
    stats[1] += 1.0

    dim = grad.shape[0]
    inv = np.float32(1.0 / n)
    for d in range(dim):
        grad[d] *= inv
    # unsynchronized: other workers may be writing the same rows
    for k in range(n):
        row = ids[k]
        for d in range(dim):
            wi[row, d] += grad[d]


@njit(fastmath=True, cache=True, nogil=True)
def _polarization(wi, grad, row, target, lr):
    loss = 0.0
    for d in range(wi.shape[1]):
        score = _sigmoid(wi[row, d])
        grad[d] = lr * (target[d] - score)
        if target[d] > 0.0:
            loss -= _log(score)
        else:
            loss -= _log(1.0 - score)
    return loss


@njit(fastmath=True, cache=True, nogil=True)
def _update_polarization(state, row, target, lr):
    wi = state[0]
    grad = state[4]
    stats = state[5]
    loss = _polarization(wi, grad, row, target, lr)
    for d in range(wi.shape[1]):
        wi[row, d] += grad[d]
    stats[0] += loss
    stats[1] += 1.0


@njit(fastmath=True, cache=True, nogil=True)
def _train_supervised(state, rng, line, labels, lr):
    if len(labels) == 0 or len(line) == 0:
        return
    i = _rand_int(rng, 0, len(labels) - 1)
    _update(state, line, labels[i], lr)


@njit(fastmath=True, cache=True, nogil=True)
def _train_cbow(state, rng, line, sub_ptr, sub_ids, ws, lr):
    n = len(line)
    longest = 0
    for w in range(n):
        k = sub_ptr[line[w] + 1] - sub_ptr[line[w]]
        if k > longest:
            longest = k
    bow = np.empty(2 * ws * longest, np.int32)
    for w in range(n):
        boundary = _rand_int(rng, 1, ws)
        k = 0
        for c in range(-boundary, boundary + 1):
            if c != 0 and 0 <= w + c < n:
                wid = line[w + c]
                for s in range(sub_ptr[wid], sub_ptr[wid + 1]):
                    bow[k] = sub_ids[s]
                    k += 1
        _update(state, bow[:k], line[w], lr)


@njit(fastmath=True, cache=True, nogil=True)
def _train_skipgram(state, rng, line, sub_ptr, sub_ids, ws, lr):
    n = len(line)
    for w in range(n):
        boundary = _rand_int(rng, 1, ws)
        wid = line[w]
        ngrams = sub_ids[sub_ptr[wid]:sub_ptr[wid + 1]]
        for c in range(-boundary, boundary + 1):
            if c != 0 and 0 <= w + c < n:
                _update(state, ngrams, line[w + c], lr)


@njit(fastmath=True, cache=True, nogil=True)
def _train_pwv(state, rng, line, sub_ptr, sub_ids, lab_ptr, lab_ids, ws, lr):
    wi = state[0]
    dim = wi.shape[1]
    target = np.zeros(dim, np.float32)
    n = len(line)
    for w in range(n):
        boundary = _rand_int(rng, 1, ws)
        wid = line[w]
        for d in range(dim):
            target[d] = np.float32(0.0)
        for s in range(lab_ptr[wid], lab_ptr[wid + 1]):
            assert lab_ids[s] < dim
            target[lab_ids[s]] = np.float32(1.0)
        _update_polarization(state, wid, target, lr)
        ngrams = sub_ids[sub_ptr[wid]:sub_ptr[wid + 1]]
        for c in range(-boundary, boundary + 1):
            if c != 0 and 0 <= w + c < n:
                _update(state, ngrams, line[w + c], lr)


# ── engine ───────────────────────────────────────────────────────────────────


class Model:
    """Per-worker engine over the shared input/output matrices.

    Scratch vectors, the random stream, the negative-table cursor and the
    running loss are private; ``wi``/``wo`` are shared and written without
    locks.
    """

    def __init__(self, wi: Matrix, wo: Matrix, args: Args, seed: int):
        self.wi, self.wo, self.args = wi, wo, args
        self.hsz = args.dim
        self.isz = wi.m
        self.osz = wo.m
        self.hidden = Vector(self.hsz)
        self.output = Vector(self.osz)
        self.grad = Vector(self.hsz)
        self.rng = MinstdRand(seed)
        self.stats = np.zeros(2, np.float64)   # loss sum, examples
        self.negatives = np.zeros(1, np.int32)
        self.negpos = np.zeros(1, np.int64)
        self.tree: HuffmanTree | None = None
        self.hidden_labels: list[int] = []
        self._paths = (np.zeros(1, np.int64), np.zeros(0, np.int32),
                       np.zeros(0, np.int8))

    def set_target_counts(self, counts, table_size: int = NEGATIVE_TABLE_SIZE):
        assert len(counts) == self.osz
        negatives = tree = None
        if self.args.loss == "ns":
            negatives = init_table_negatives(counts, self.args.seed,
                                             table_size)
        if self.args.loss == "hs":
            tree = build_tree(counts)
        self.set_tables(negatives, tree)

    def set_tables(self, negatives: np.ndarray | None = None,
                   tree: HuffmanTree | None = None):
        """Attach read-only output tables shared between engines."""
        if negatives is not None:
            self.negatives = negatives
            self.negpos[0] = self.rng() % len(negatives)
        if tree is not None:
            assert tree.osz == self.osz
            self.tree = tree
            self._paths = (tree.path_ptr, tree.path_nodes, tree.path_codes)

    @property
    def state(self):
        return (self.wi.data, self.wo.data, self.hidden.data,
                self.output.data, self.grad.data, self.stats,
                self.negatives, self.negpos, *self._paths,
                LOSS_CODES[self.args.loss], self.args.neg)

    # ── losses ────────────────────────────────────────────────────────────

    def compute_hidden(self, ids):
        ids = self._ids(ids)
        _compute_hidden(self.wi.data, ids, self.hidden.data)

    def binary_logistic(self, target: int, label: bool, lr: float) -> float:
        assert 0 <= target < self.osz
        return _binary_logistic(self.wo.data, self.hidden.data,
                                self.grad.data, target, label, lr)

    def get_negative(self, target: int) -> int:
        return int(_get_negative(self.negatives, self.negpos, target))

    def negative_sampling(self, target: int, lr: float) -> float:
        assert 0 <= target < self.osz
        return _negative_sampling(self.wo.data, self.hidden.data,
                                  self.grad.data, self.negatives, self.negpos,
                                  target, self.args.neg, lr)

    def hierarchical_softmax(self, target: int, lr: float) -> float:
        assert self.tree is not None and 0 <= target < self.osz
        return _hierarchical_softmax(self.wo.data, self.hidden.data,
                                     self.grad.data, *self._paths, target, lr)

    def softmax(self, target: int, lr: float) -> float:
        assert 0 <= target < self.osz
        return _softmax(self.wo.data, self.hidden.data, self.output.data,
                        self.grad.data, target, lr)

    def update(self, ids, target: int, lr: float):
        assert self.args.loss != "hs" or self.tree is not None
        _update(self.state, self._ids(ids), target, lr)

    def set_hidden_labels(self, labels):
        self.hidden_labels = list(labels)

    def polarization(self, i: int, lr: float) -> float:
        assert 0 <= i < self.isz
        target = Vector(self.hsz, self.hidden_labels)
        return _polarization(self.wi.data, self.grad.data, i, target.data, lr)

    def update_polarization(self, i: int, lr: float):
        assert 0 <= i < self.isz
        target = Vector(self.hsz, self.hidden_labels)
        _update_polarization(self.state, i, target.data, lr)

    def get_loss(self) -> float:
        if self.stats[1] == 0:
            return 0.0
        return float(self.stats[0] / self.stats[1])

    # ── prediction ────────────────────────────────────────────────────────

    def predict(self, ids, k: int) -> list[tuple[float, int]]:
        """Top-k (log-probability, class) pairs, best first."""
        assert k > 0
        self.compute_hidden(ids)
        if self.args.loss == "hs":
            heap: list[tuple[float, int]] = []
            self._dfs(k, 2 * self.osz - 2, 0.0, heap)
            return sorted(heap, reverse=True)
        return self._find_k_best(k)

    def _dfs(self, k, node, score, heap):
        if len(heap) == k and score < heap[0][0]:
            return
        tree = self.tree
        if tree.left[node] == -1 and tree.right[node] == -1:
            heapq.heappush(heap, (score, int(node)))
            if len(heap) > k:
                heapq.heappop(heap)
            return
        f = _sigmoid(self.wo.dot_row(self.hidden, node - self.osz))
        self._dfs(k, tree.left[node], score + _log(1.0 - f), heap)
        self._dfs(k, tree.right[node], score + _log(f), heap)

    def _find_k_best(self, k):
        _compute_output_softmax(self.wo.data, self.hidden.data,
                                self.output.data)
        logp = np.log(self.output.data.astype(np.float64) + 1e-5)
        k = min(k, self.osz)
        top = np.argpartition(-logp, k - 1)[:k]
        return sorted(((float(logp[i]), int(i)) for i in top), reverse=True)

    def _ids(self, ids) -> np.ndarray:
        ids = np.asarray(ids, dtype=np.int32)
        assert ids.size == 0 or (ids.min() >= 0 and ids.max() < self.isz), \
            "input id outside the input matrix"
        return ids


# ── scheduler context ────────────────────────────────────────────────────────


class _TrainContext:
    """State shared by the workers of one run."""

    def __init__(self, budget: int):
        self.budget = budget
        self.token_count = 0
        self.start = time.time()
        self.errors: list[BaseException] = []
        self._lock = threading.Lock()

    def add_tokens(self, n: int):
        with self._lock:
            self.token_count += n

    def fail(self, exc: BaseException):
        with self._lock:
            self.errors.append(exc)

    @property
    def done(self) -> bool:
        return self.token_count >= self.budget or bool(self.errors)


# ── model ────────────────────────────────────────────────────────────────────


class PolarText:
    """Dictionary plus input/output matrices, trained with hogwild workers.

    ::

        model = PolarText.train("train.txt", model="sup")
        model.predict("the food was great")
    """

    __slots__ = ("args", "dict", "input", "output", "model")

    def __init__(self, *, args: Args, dictionary: Dictionary,
                 input: Matrix, output: Matrix):
        self.args = args
        self.dict = dictionary
        self.input, self.output = input, output
        self.model = Model(input, output, args, args.seed)

    def _target_counts(self) -> np.ndarray:
        kind = LABEL if self.args.supervised else WORD
        return self.dict.get_counts(kind)

    # ── vectors ───────────────────────────────────────────────────────────

    def get_vector(self, word: str) -> np.ndarray:
        """Mean of the input rows of *word*'s subwords."""
        ngrams = self.dict.get_subwords(word)
        vec = Vector(self.args.dim)
        for i in ngrams:
            vec.add_row(self.input, i)
        if ngrams:
            vec.mul(1.0 / len(ngrams))
        return vec.data

    def get_sentence_vector(self, text: str) -> np.ndarray:
        line, _, _ = self.dict.parse_line(tokenize(text), self.model.rng,
                                         discard=False)
        self.dict.add_ngrams(line, self.args.word_ngrams)
        vec = Vector(self.args.dim)
        for i in line:
            vec.add_row(self.input, i)
        if line:
            vec.mul(1.0 / len(line))
        return vec.data

    def save_vectors(self, path: str):
        with open(path, "w", encoding="utf-8", errors="surrogateescape") as f:
            f.write(f"{self.dict.nwords} {self.args.dim}\n")
            for i in range(self.dict.nwords):
                word = self.dict.get_word(i)
                f.write(f"{word} {_fmt(self.get_vector(word))}\n")

    def word_vectors(self, stream=None, out=None):
        stream = stream or sys.stdin
        out = out or sys.stdout
        for line in stream:
            for word in tokenize(line):
                print(f"{word} {_fmt(self.get_vector(word))}", file=out)

    def text_vectors(self, stream=None, out=None):
        stream = stream or sys.stdin
        out = out or sys.stdout
        for line in stream:
            print(_fmt(self.get_sentence_vector(line)), file=out)

    def print_vectors(self, stream=None, out=None):
        if self.args.supervised:
            self.text_vectors(stream, out)
        else:
            self.word_vectors(stream, out)

    # ── prediction ────────────────────────────────────────────────────────

    def predict(self, text: str, k: int = 1) -> list[tuple[str, float]]:
        """Predict top-k labels. Returns [(label, probability), ...]."""
        line, _, _ = self.dict.parse_line(tokenize(text), self.model.rng,
                                         discard=False)
        self.dict.add_ngrams(line, self.args.word_ngrams)
        if not line:
            return []
        return [(self.dict.get_label(lid), math.exp(logp))
                for logp, lid in self.model.predict(line, k)]

    def predict_file(self, stream, k: int = 1, print_prob: bool = False,
                     out=None):
        out = out or sys.stdout
        for text in stream:
            preds = self.predict(text, k)
            if not preds:
                print("n/a", file=out)
                continue
            if print_prob:
                print(" ".join(f"{label} {p:.5g}" for label, p in preds),
                      file=out)
            else:
                print(" ".join(label for label, _ in preds), file=out)

    def test(self, data, k: int = 1) -> tuple[int, float, float]:
        """Evaluate on labeled data. Returns (N, precision@k, recall@k)."""
        if isinstance(data, str):
            data = iter_lines(data)
        d = self.dict
        nexamples = nlabels = 0
        hits = 0.0
        for tokens in data:
            line, labels, _ = d.parse_line(tokens, self.model.rng,
                                           discard=False)
            d.add_ngrams(line, self.args.word_ngrams)
            if not labels or not line:
                continue
            for _, lid in self.model.predict(line, k):
                if lid in labels:
                    hits += 1.0
            nexamples += 1
            nlabels += len(labels)
        precision = hits / (k * nexamples) if nexamples else 0.0
        recall = hits / nlabels if nlabels else 0.0
        return nexamples, precision, recall

    # ── I/O ──────────────────────────────────────────────────────────────

    def save(self, path: str):
        with open(path, "wb") as f:
            self.args.save(f)
            self.dict.save(f)
            self.input.save(f)
            self.output.save(f)

    @classmethod
    def load(cls, path: str, capacity: int = MAX_VOCAB_SIZE) -> PolarText:
        with open(path, "rb") as f:
            reader = _Reader(f.read())
        args = Args.load(reader)
        args.verbose = 0
        d = Dictionary.load(reader, args, capacity)
        input = Matrix.load(reader, d.nwords + args.bucket, args.dim)
        osz = d.nlabels if args.supervised else d.nwords
        output = Matrix.load(reader, osz, args.dim)
        if reader.pos != len(reader.buf):
            raise ValueError("trailing bytes after model payload")
        self = cls(args=args, dictionary=d, input=input, output=output)
        self.model.set_target_counts(self._target_counts())
        return self

    # ── training ─────────────────────────────────────────────────────────

    @classmethod
    def build(cls, path: str, *, model: str = "sg",
              capacity: int = MAX_VOCAB_SIZE, **overrides) -> PolarText:
        """Read the vocabulary of *path* and allocate untrained matrices."""
        args = Args.for_model(model, input=path, **overrides)
        d = Dictionary(args, capacity)
        with open(path, "rb") as f:
            d.read_from_file(f)
        if args.model in ("sup", "pwv") and d.nlabels == 0:
            raise ValueError(f"model {args.model!r} needs labelled input "
                             f"(prefix {args.label!r})")
        if args.model == "pwv":
            args.dim = d.nlabels

        input = Matrix(d.nwords + args.bucket, args.dim)
        output = Matrix(d.nlabels if args.supervised else d.nwords, args.dim)
        if args.model == "pwv":
            for i in range(d.nwords):
                labels = d.get_labels(i)
                scale = 1.0 / len(labels) if labels else 0.0
                input.add_row(Vector(args.dim, labels), i, scale)
            input.data[d.nwords:] = 1.0 / args.dim
        else:
            input.uniform(1.0 / args.dim, args.seed)
        return cls(args=args, dictionary=d, input=input, output=output)

    @classmethod
    def train(cls, data, *, model: str = "sg", **overrides) -> PolarText:
        """Train a model.

        *data* is a file path (str) or an iterable of token lists.
        Iterables are spilled to a temp file first.
        """
        if not isinstance(data, str):
            tmp = tempfile.NamedTemporaryFile(
                mode="w", suffix=".txt", delete=False, encoding="utf-8")
            try:
                for tokens in data:
                    tmp.write(" ".join(tokens) + "\n")
                tmp.close()
                return cls.train(tmp.name, model=model, **overrides)
            finally:
                try:
                    os.unlink(tmp.name)
                except OSError:
                    pass

        self = cls.build(data, model=model, **overrides)
        self.fit()
        return self

    def fit(self, path: str | None = None):
        """Run ``epoch`` passes of hogwild training over *path*."""
        args, d = self.args, self.dict
        path = path or args.input
        if all(e.word == EOS for e in d.words):
            raise ValueError("Empty vocabulary. Try a smaller -minCount value.")

        counts = self._target_counts()
        negatives = tree = None
        if args.loss == "ns":
            negatives = init_table_negatives(counts, args.seed)
        elif args.loss == "hs":
            tree = build_tree(counts)
        sub = d.subword_index()
        lab = d.label_index() if args.model == "pwv" else None

        ctx = _TrainContext(args.epoch * d.ntokens)
        file_size = os.path.getsize(path)
        workers = [
            threading.Thread(
                target=self._train_thread,
                args=(path, i, file_size, ctx, negatives, tree, sub, lab))
            for i in range(args.thread)
        ]
        for w in workers:
            w.start()
        for w in workers:
            w.join()
        if ctx.errors:
            raise ctx.errors[0]

        self.model = Model(self.input, self.output, args, args.seed)
        self.model.set_tables(negatives, tree)

    def _train_thread(self, path, thread_id, file_size, ctx,
                      negatives, tree, sub, lab):
        try:
            self._train_loop(path, thread_id, file_size, ctx,
                             negatives, tree, sub, lab)
        except BaseException as e:
            ctx.fail(e)

    def _train_loop(self, path, thread_id, file_size, ctx,
                    negatives, tree, sub, lab):
        args, d = self.args, self.dict
        model = Model(self.input, self.output, args,
                      _thread_seed(args.seed, thread_id))
        model.set_tables(negatives, tree)
        state = model.state
        rng = model.rng.state
        sub_ptr, sub_ids = sub
        local_token_count = 0
        progress = 0.0

        with open(path, "rb") as f:
            f.seek(thread_id * file_size // args.thread)
            while not ctx.done:
                progress = ctx.token_count / ctx.budget
                lr = args.lr * (1.0 - progress)
                words, labels, n = d.get_line(f, model.rng)
                local_token_count += n
                if args.model == "sup":
                    d.add_ngrams(words, args.word_ngrams)
                    _train_supervised(state, rng,
                                      np.asarray(words, np.int32),
                                      np.asarray(labels, np.int32), lr)
                elif args.model == "cbow":
                    _train_cbow(state, rng, np.asarray(words, np.int32),
                                sub_ptr, sub_ids, args.ws, lr)
                elif args.model == "sg":
                    _train_skipgram(state, rng, np.asarray(words, np.int32),
                                    sub_ptr, sub_ids, args.ws, lr)
                else:
                    _train_pwv(state, rng, np.asarray(words, np.int32),
                               sub_ptr, sub_ids, lab[0], lab[1], args.ws, lr)
                if local_token_count > args.lr_update_rate:
                    ctx.add_tokens(local_token_count)
                    local_token_count = 0
                    if thread_id == 0 and args.verbose > 1:
                        self._print_info(ctx, progress, model.get_loss())

        if thread_id == 0 and args.verbose > 0:
            self._print_info(ctx, 1.0, model.get_loss())
            print(file=sys.stderr)

    def _print_info(self, ctx, progress, loss):
        elapsed = max(time.time() - ctx.start, 1e-6)
        wst = ctx.token_count / elapsed / self.args.thread
        lr = self.args.lr * (1.0 - progress)
        eta = int(elapsed / max(progress, 1e-6) * (1.0 - progress))
        print(f"\rProgress: {100 * progress:5.1f}%"
              f"  words/sec/thread: {wst:.0f}  lr: {lr:.6f}"
              f"  loss: {loss:.6f}  eta: {eta // 3600}h{eta % 3600 // 60}m ",
              end="", file=sys.stderr)


def _fmt(vec) -> str:
    return " ".join(f"{x:.5g}" for x in vec)


# ── CLI ──────────────────────────────────────────────────────────────────────

_TRAIN_COMMANDS = {"supervised": "sup", "cbow": "cbow",
                   "skipgram": "sg", "pwv": "pwv"}


def _cli(argv=None):
    p = argparse.ArgumentParser(prog="polartext")
    sub = p.add_subparsers(dest="cmd")

    for name in _TRAIN_COMMANDS:
        tr = sub.add_parser(name)
        tr.add_argument("corpus")
        tr.add_argument("-o", "--output", required=True)
        tr.add_argument("--dim",            type=int)
        tr.add_argument("--lr",             type=float)
        tr.add_argument("--ws",             type=int)
        tr.add_argument("--epoch",          type=int)
        tr.add_argument("--min-count",      type=int)
        tr.add_argument("--neg",            type=int)
        tr.add_argument("--word-ngrams",    type=int)
        tr.add_argument("--loss",           choices=sorted(LOSS_CODES))
        tr.add_argument("--bucket",         type=int)
        tr.add_argument("--minn",           type=int)
        tr.add_argument("--maxn",           type=int)
        tr.add_argument("--thread",         type=int)
        tr.add_argument("--lr-update-rate", type=int)
        tr.add_argument("--t",              type=float)
        tr.add_argument("--label")
        tr.add_argument("--verbose",        type=int)
        tr.add_argument("--seed",           type=int)

    ts = sub.add_parser("test")
    ts.add_argument("model")
    ts.add_argument("test_file")
    ts.add_argument("-k", type=int, default=1)

    pr = sub.add_parser("predict")
    pr.add_argument("model")
    pr.add_argument("test_file", nargs="?", default="-")
    pr.add_argument("-k", type=int, default=1)
    pr.add_argument("--prob", action="store_true")

    pv = sub.add_parser("print-vectors")
    pv.add_argument("model")

    args = p.parse_args(argv)
    try:
        if args.cmd in _TRAIN_COMMANDS:
            overrides = {k: v for k, v in vars(args).items()
                         if v is not None and k not in ("cmd", "corpus")}
            m = PolarText.train(args.corpus,
                                model=_TRAIN_COMMANDS[args.cmd], **overrides)
            m.save(args.output + ".bin")
            if not m.args.supervised:
                m.save_vectors(args.output + ".vec")
        elif args.cmd == "test":
            m = PolarText.load(args.model)
            n, prec, rec = m.test(args.test_file, k=args.k)
            print(f"P@{args.k}: {prec:.3f}")
            print(f"R@{args.k}: {rec:.3f}")
            print(f"Number of examples: {n}")
        elif args.cmd == "predict":
            m = PolarText.load(args.model)
            if args.test_file == "-":
                m.predict_file(sys.stdin, k=args.k, print_prob=args.prob)
            else:
                with open(args.test_file, encoding="utf-8",
                          errors="surrogateescape") as f:
                    m.predict_file(f, k=args.k, print_prob=args.prob)
        elif args.cmd == "print-vectors":
            PolarText.load(args.model).print_vectors()
        else:
            p.print_help()
    except (OSError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    _cli()
