"""Population manager for polygon-genome image approximation.

Generational EA: score every candidate against the target, rank by
fitness (ascending, lower = closer), keep the elite unchanged and fill
the rest of the next generation with children of tournament-selected
parents.

Candidate construction and scoring run on a thread pool.  Each task
gets its own ``random.Random`` seeded from the population's generator
before submission, so a seeded population evolves reproducibly.
"""

from __future__ import annotations

import json
import random
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Iterable, Sequence

import numpy as np
from loguru import logger
from PIL import Image

from polygen.art.fitness import score_candidate, target_array
from polygen.polygons.genome import (
    MUTATION_CHANCE,
    POLYGONS_PER_INDIVIDUAL,
    POPULATION_COUNT,
    Candidate,
    mate,
    mutate,
    random_candidate,
)

DEFAULT_CONFIG = {
    "pop_size": POPULATION_COUNT,
    "num_polygons": POLYGONS_PER_INDIVIDUAL,
    "mutation_chance": MUTATION_CHANCE,
    "elitism": 2,
    "tournament_k": 3,
    "workers": 4,
    "seed": None,
}


def rank_by_fitness(candidates: Iterable[Candidate]) -> list[Candidate]:
    """Return candidates sorted by fitness, lowest first."""
    candidates = list(candidates)
    unscored = [i for i, c in enumerate(candidates) if c.fitness is None]
    if unscored:
        raise ValueError(f"candidates without fitness at positions {unscored}")
    return sorted(candidates)


class CandidatePopulation:
    def __init__(self, width: int, height: int, config: dict | None = None):
        self.config = {**DEFAULT_CONFIG, **(config or {})}
        self.width = width
        self.height = height
        self.pop_size: int = self.config["pop_size"]
        self.num_polygons: int = self.config["num_polygons"]
        self.mutation_chance: float = self.config["mutation_chance"]
        self.elitism: int = self.config["elitism"]
        self.tournament_k: int = self.config["tournament_k"]
        self.workers: int = self.config["workers"]

        self.rng = random.Random(self.config["seed"])
        self.candidates: list[Candidate] = []
        self.generation: int = 0

    # ------------------------------------------------------------------
    # Concurrency helpers
    # ------------------------------------------------------------------

    def _task_rngs(self, n: int) -> list[random.Random]:
        return [random.Random(self.rng.getrandbits(64)) for _ in range(n)]

    def _run(self, fn: Callable, jobs: Sequence[tuple]) -> list:
        if self.workers <= 1 or len(jobs) <= 1:
            return [fn(*job) for job in jobs]
        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            futures = [pool.submit(fn, *job) for job in jobs]
            return [f.result() for f in futures]

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        jobs = [
            (self.width, self.height, rng, self.num_polygons)
            for rng in self._task_rngs(self.pop_size)
        ]
        self.candidates = self._run(random_candidate, jobs)
        self.generation = 0
        logger.info("Initialized {} candidates ({}x{}, {} polygons each)",
                    self.pop_size, self.width, self.height, self.num_polygons)

    def branch_from(self, path: str | Path) -> None:
        """Fork a population from a saved candidate JSON."""
        base = self.load_candidate(path)
        if (base.width, base.height) != (self.width, self.height):
            raise ValueError(
                f"saved candidate is {base.width}x{base.height}, "
                f"population is {self.width}x{self.height}"
            )
        # The stored fitness was measured against whatever target it was saved under.
        self.candidates = [base.copy()]
        for rng in self._task_rngs(self.pop_size - 1):
            self.candidates.append(self._mutated_copy(base, rng))
        self.generation = 0
        logger.info("Branched {} candidates from {}", self.pop_size, path)

    def _mutated_copy(self, base: Candidate, rng: random.Random) -> Candidate:
        child = base.copy()
        for p in child.polygons:
            if rng.random() < self.mutation_chance:
                mutate(p, self.width, self.height, rng)
        child.render()
        return child

    # ------------------------------------------------------------------
    # Fitness
    # ------------------------------------------------------------------

    def score(self, target: Image.Image | np.ndarray,
              rescore: bool = False) -> None:
        """Score candidates against ``target``.

        Candidates that already carry a fitness are skipped unless
        ``rescore`` is set; elites survive a generation unchanged.
        """
        arr = target_array(target)
        jobs = [
            (c, arr) for c in self.candidates
            if rescore or c.fitness is None
        ]
        self._run(score_candidate, jobs)

    def rank(self) -> list[Candidate]:
        self.candidates = rank_by_fitness(self.candidates)
        return self.candidates

    @property
    def best(self) -> Candidate:
        return rank_by_fitness(self.candidates)[0]

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def _tournament_select(self, ranked: list[Candidate]) -> Candidate:
        k = min(self.tournament_k, len(ranked))
        return min(self.rng.sample(ranked, k))

    # ------------------------------------------------------------------
    # Evolution
    # ------------------------------------------------------------------

    def evolve(self) -> None:
        """Replace the population with the elite plus mated children.

        Must call score() first.
        """
        ranked = rank_by_fitness(self.candidates)
        next_gen = ranked[: min(self.elitism, self.pop_size)]

        n_children = self.pop_size - len(next_gen)
        parents = [
            (self._tournament_select(ranked), self._tournament_select(ranked))
            for _ in range(n_children)
        ]
        jobs = [
            (p1, p2, rng, self.mutation_chance)
            for (p1, p2), rng in zip(parents, self._task_rngs(n_children))
        ]
        next_gen.extend(self._run(mate, jobs))

        self.candidates = next_gen
        self.generation += 1

    def step(self, target: Image.Image | np.ndarray) -> Candidate:
        """Score, rank and evolve once; returns the generation's best."""
        self.score(target)
        best = self.rank()[0]
        logger.info("Generation {}: best fitness {}", self.generation, best.fitness)
        self.evolve()
        return best

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def save_candidate(self, index: int, path: str | Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        candidate = self.candidates[index]
        path.write_text(json.dumps(candidate.to_dict(), indent=2))
        return path

    @staticmethod
    def load_candidate(path: str | Path) -> Candidate:
        path = Path(path)
        data = json.loads(path.read_text())
        return Candidate.from_dict(data)
