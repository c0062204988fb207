from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

from .genome import Genome
from .innovation import GENE_IDS, GeneIdAllocator

FORMAT_VERSION = 1


@dataclass(frozen=True)
class StashEntry:
    """An all-time best genome, frozen at the generation it was found."""

    genome: Genome
    generation: int


def _check_version(payload: dict[str, Any], path: Path) -> None:
    version = payload.get("format_version")
    if version != FORMAT_VERSION:
        raise ValueError(f"{path}: unsupported format_version {version!r} (expected {FORMAT_VERSION})")


def _write_json(payload: dict[str, Any], path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)


def save_genome_json(genome: Genome, path: Path, meta: dict[str, Any] | None = None) -> Path:
    payload = {"format_version": FORMAT_VERSION, "genome": genome.to_dict(), "meta": meta or {}}
    _write_json(payload, path)
    return path


def load_genome_json(path: Path, ids: GeneIdAllocator = GENE_IDS) -> tuple[Genome, dict[str, Any]]:
    """Read a genome written by :func:`save_genome_json`, along with its metadata."""
    with Path(path).open("r", encoding="utf-8") as f:
        payload = json.load(f)
    _check_version(payload, Path(path))
    return Genome.from_dict(payload["genome"], ids), payload.get("meta", {})


def save_stash_json(stash: Iterable[StashEntry], path: Path) -> Path:
    payload = {
        "format_version": FORMAT_VERSION,
        "stash": [{"generation": e.generation, "genome": e.genome.to_dict()} for e in stash],
    }
    _write_json(payload, path)
    return path


def load_stash_json(path: Path, ids: GeneIdAllocator = GENE_IDS) -> list[StashEntry]:
    with Path(path).open("r", encoding="utf-8") as f:
        payload = json.load(f)
    _check_version(payload, Path(path))
    return [
        StashEntry(genome=Genome.from_dict(item["genome"], ids), generation=int(item["generation"]))
        for item in payload["stash"]
    ]
