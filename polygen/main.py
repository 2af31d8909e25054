#!/usr/bin/env python3
"""Polygon image approximation -- CLI Interface.

Evolution loop:
1. Loads (and optionally shrinks) a target image
2. Scores every candidate against it, ranks by fitness
3. Breeds the next generation from the best
4. Periodically writes the best candidate (PNG + JSON) and a population grid

Usage:
    python -m polygen.main TARGET [--generations N] [--pop-size N] [--polygons N] ...
"""

from __future__ import annotations

import argparse
from pathlib import Path

from loguru import logger

from polygen.art.fitness import load_target, target_array
from polygen.polygons.genome import (
    MUTATION_CHANCE,
    POLYGONS_PER_INDIVIDUAL,
    POPULATION_COUNT,
)
from polygen.polygons.population import CandidatePopulation
from polygen.polygons.renderer import render_population_grid, save_png
from polygen.utils.logger_setup import setup_logger

OUTPUT_DIR = Path("output")
GRID_COLS = 5


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Evolve semi-transparent polygons toward a target image")
    p.add_argument("target", type=Path, help="Target image path")
    p.add_argument("--generations", type=int, default=1000, help="Generations to run (default: 1000)")
    p.add_argument("--pop-size", type=int, default=POPULATION_COUNT,
                   help=f"Population size (default: {POPULATION_COUNT})")
    p.add_argument("--polygons", type=int, default=POLYGONS_PER_INDIVIDUAL,
                   help=f"Polygons per candidate (default: {POLYGONS_PER_INDIVIDUAL})")
    p.add_argument("--mutation-chance", type=float, default=MUTATION_CHANCE,
                   help=f"Per-polygon mutation chance when mating (default: {MUTATION_CHANCE})")
    p.add_argument("--elitism", type=int, default=2, help="Candidates kept unchanged each generation (default: 2)")
    p.add_argument("--max-size", type=int, default=128,
                   help="Shrink the target so its longest side is at most this (default: 128)")
    p.add_argument("--seed", type=int, default=None, help="Random seed for a reproducible run")
    p.add_argument("--workers", type=int, default=4, help="Worker threads for rendering/scoring (default: 4)")
    p.add_argument("--output", type=Path, default=OUTPUT_DIR, help="Output directory (default: output)")
    p.add_argument("--save-every", type=int, default=100, help="Write outputs every N generations (default: 100)")
    p.add_argument("--branch", type=str, default=None, help="Path to a saved candidate JSON to branch from")
    p.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                   help="Log level (default: INFO)")
    p.add_argument("--log-dir", type=Path, default=None, help="Also write logs to this directory")
    return p.parse_args(argv)


def _write_outputs(pop: CandidatePopulation, output: Path) -> None:
    best_idx = pop.candidates.index(pop.best)
    png_path = save_png(pop.candidates[best_idx], output / f"best_{pop.generation:05d}.png")
    json_path = pop.save_candidate(best_idx, output / f"best_{pop.generation:05d}.json")
    grid = render_population_grid(pop.candidates, thumb_size=128, cols=GRID_COLS)
    grid.save(output / f"gen_{pop.generation:05d}_grid.png")
    logger.info("Saved {} and {}", png_path, json_path)


def run(args: argparse.Namespace) -> CandidatePopulation:
    target = load_target(args.target, args.max_size)
    width, height = target.size
    arr = target_array(target)

    config = {
        "pop_size": args.pop_size,
        "num_polygons": args.polygons,
        "mutation_chance": args.mutation_chance,
        "elitism": args.elitism,
        "workers": args.workers,
        "seed": args.seed,
    }
    pop = CandidatePopulation(width, height, config)

    if args.branch:
        logger.info("Branching from candidate: {}", args.branch)
        pop.branch_from(args.branch)
    else:
        pop.initialize()

    logger.info("=== Polygon Evolution ===")
    logger.info("Target: {} ({}x{}) | Population: {} | Polygons: {}",
                args.target, width, height, args.pop_size, args.polygons)

    args.output.mkdir(parents=True, exist_ok=True)

    try:
        for _ in range(args.generations):
            pop.score(arr)
            if args.save_every > 0 and pop.generation % args.save_every == 0:
                _write_outputs(pop, args.output)
            pop.step(arr)
    except KeyboardInterrupt:
        logger.warning("Interrupted at generation {}", pop.generation)

    pop.score(arr)
    _write_outputs(pop, args.output)
    logger.info("Done -- generation {}, best fitness {}", pop.generation, pop.best.fitness)
    return pop


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logger(args.log_level, args.log_dir)
    run(args)


if __name__ == "__main__":
    main()
