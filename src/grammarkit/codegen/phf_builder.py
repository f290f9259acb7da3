"""
Build-time construction of perfect-hash maps.

The layout search follows CHD: keys are split into buckets of about
``LAMBDA`` keys, the largest buckets are placed first, and each bucket
gets the first displacement pair that sends all its keys to free slots.
Seeds are tried in order from zero, so the same keys always produce the
same table.

"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from grammarkit.phf import displace, hash_key

if TYPE_CHECKING:
	from collections.abc import Sequence

logger = logging.getLogger(__name__)

LAMBDA = 5
MAX_SEEDS = 10_000


@dataclass(frozen=True)
class HashState:
	"""A finished layout: ``slots[i]`` is the index of the key stored in slot ``i``."""

	seed: int
	disps: tuple[tuple[int, int], ...]
	slots: tuple[int, ...]


def try_generate_hash(keys: Sequence[str], seed: int) -> HashState | None:
	"""Attempt a layout under one seed, returning None if a bucket cannot be placed."""
	hashes = [hash_key(key, seed) for key in keys]
	table_len = len(hashes)
	buckets_len = (table_len + LAMBDA - 1) // LAMBDA
	buckets: list[list[int]] = [[] for _ in range(buckets_len)]
	for key_index, hashes_of_key in enumerate(hashes):
		buckets[hashes_of_key.g % buckets_len].append(key_index)

	# Largest buckets first; sorted() is stable so ties keep bucket order
	order = sorted(range(buckets_len), key=lambda bucket: len(buckets[bucket]), reverse=True)

	slots: list[int | None] = [None] * table_len
	disps = [(0, 0)] * buckets_len
	try_map = [0] * table_len
	generation = 0

	for bucket in order:
		members = buckets[bucket]
		if not members:
			continue
		for d1, d2 in itertools.product(range(table_len), repeat=2):
			generation += 1
			placed: list[tuple[int, int]] = []
			for key_index in members:
				slot = displace(hashes[key_index].f1, hashes[key_index].f2, d1, d2) % table_len
				if slots[slot] is not None or try_map[slot] == generation:
					break
				try_map[slot] = generation
				placed.append((slot, key_index))
			else:
				disps[bucket] = (d1, d2)
				for slot, key_index in placed:
					slots[slot] = key_index
				break
		else:
			return None

	return HashState(seed=seed, disps=tuple(disps), slots=tuple(slot for slot in slots if slot is not None))


def generate_hash(keys: Sequence[str]) -> HashState:
	"""
	Find a perfect-hash layout for ``keys``.

	Raises:
	    ValueError: If ``keys`` contains duplicates or no seed works

	"""
	if len(set(keys)) != len(keys):
		msg = "Perfect-hash keys must be unique"
		raise ValueError(msg)
	if not keys:
		return HashState(seed=0, disps=(), slots=())

	for seed in range(MAX_SEEDS):
		state = try_generate_hash(keys, seed)
		if state is not None:
			logger.debug("Placed %d keys with seed %d", len(keys), seed)
			return state
	msg = f"No perfect-hash layout found for {len(keys)} keys within {MAX_SEEDS} seeds"
	raise ValueError(msg)


class PhfMapBuilder:
	"""
	Accumulates ``key -> value expression`` entries and renders a
	:class:`~grammarkit.phf.PhfMap` constructor as Python source.
	"""

	def __init__(self) -> None:
		self._keys: list[str] = []
		self._values: list[str] = []

	def entry(self, key: str, value: str) -> PhfMapBuilder:
		"""
		Add one entry; ``value`` is a Python expression emitted verbatim.

		Raises:
		    ValueError: If ``key`` was already added

		"""
		if key in self._keys:
			msg = f"Duplicate key {key!r}"
			raise ValueError(msg)
		self._keys.append(key)
		self._values.append(value)
		return self

	def __len__(self) -> int:
		return len(self._keys)

	def build(self) -> str:
		"""Render the finished map as a ``PhfMap(...)`` expression."""
		state = generate_hash(self._keys)
		lines = ["PhfMap(", f"\tseed={state.seed},", "\tdisps=("]
		lines.extend(f"\t\t({d1}, {d2})," for d1, d2 in state.disps)
		lines.extend(["\t),", "\tentries=("])
		lines.extend(f"\t\t({self._keys[index]!r}, {self._values[index]})," for index in state.slots)
		lines.extend(["\t),", ")"])
		return "\n".join(lines)
