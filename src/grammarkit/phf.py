"""
Read-only perfect-hash maps.

Generated registries embed a :class:`PhfMap` whose layout was computed
at build time with the CHD (hash, displace) scheme: a key is hashed
once, its bucket's displacement pair picks exactly one slot, and a
single string comparison confirms the hit. Lookups never probe.

The hash is a keyed BLAKE2b so it is identical across processes,
unlike the builtin ``hash`` of ``str``.

"""

from __future__ import annotations

import hashlib
import struct
from collections.abc import Iterator, Mapping
from typing import Generic, NamedTuple, TypeVar

V = TypeVar("V")

U32_MASK = 0xFFFFFFFF


class Hashes(NamedTuple):
	"""The three 32-bit hashes CHD derives from one key."""

	g: int
	f1: int
	f2: int


def hash_key(key: str, seed: int) -> Hashes:
	"""Hash ``key`` under ``seed``."""
	digest = hashlib.blake2b(key.encode("utf-8"), digest_size=12, key=seed.to_bytes(8, "little")).digest()
	return Hashes(*struct.unpack("<III", digest))


def displace(f1: int, f2: int, d1: int, d2: int) -> int:
	"""Slot hash of a key after applying its bucket's displacements."""
	return (d2 + f1 * d1 + f2) & U32_MASK


class PhfMap(Mapping[str, V], Generic[V]):
	"""
	Immutable mapping with a precomputed perfect-hash layout.

	Instances are built by generated code; ``entries`` must already be
	in slot order for ``seed`` and ``disps``.

	"""

	__slots__ = ("_disps", "_entries", "_seed")

	def __init__(
		self,
		seed: int,
		disps: tuple[tuple[int, int], ...],
		entries: tuple[tuple[str, V], ...],
	) -> None:
		self._seed = seed
		self._disps = disps
		self._entries = entries

	def _slot(self, key: str) -> int:
		hashes = hash_key(key, self._seed)
		d1, d2 = self._disps[hashes.g % len(self._disps)]
		return displace(hashes.f1, hashes.f2, d1, d2) % len(self._entries)

	def __getitem__(self, key: str) -> V:
		if not isinstance(key, str) or not self._entries:
			raise KeyError(key)
		entry_key, value = self._entries[self._slot(key)]
		if entry_key != key:
			raise KeyError(key)
		return value

	def __iter__(self) -> Iterator[str]:
		return (key for key, _ in self._entries)

	def __len__(self) -> int:
		return len(self._entries)

	def __repr__(self) -> str:
		return f"PhfMap({dict(self._entries)!r})"
