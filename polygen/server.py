"""Polygon image approximation -- HTTP API.

Holds one population and its target in memory; clients upload a target,
advance evolution in batches of generations and fetch the current best.

Launch:
    python -m polygen.server
    # or: uvicorn polygen.server:app --reload
"""

from __future__ import annotations

import base64
import io
from pathlib import Path

import numpy as np
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from loguru import logger
from PIL import Image
from pydantic import BaseModel, Field

from polygen.art.fitness import target_array
from polygen.polygons.genome import (
    MUTATION_CHANCE,
    POLYGONS_PER_INDIVIDUAL,
    POPULATION_COUNT,
)
from polygen.polygons.population import CandidatePopulation
from polygen.polygons.renderer import save_png

OUTPUT_DIR = Path("output")

app = FastAPI(title="Polygon Evolution")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Application state
# ---------------------------------------------------------------------------

class AppState:
    def __init__(self):
        self.pop: CandidatePopulation | None = None
        self.target: np.ndarray | None = None
        self.output_dir: Path = OUTPUT_DIR

    def reset(self, target: Image.Image, config: dict) -> None:
        self.target = target_array(target)
        width, height = target.size
        self.pop = CandidatePopulation(width, height, config)
        self.pop.initialize()
        self.pop.score(self.target)

    def evolve(self, generations: int) -> None:
        for _ in range(generations):
            self.pop.step(self.target)
        self.pop.score(self.target)

    def get_state_payload(self) -> dict:
        ranked = self.pop.rank()
        return {
            "generation": self.pop.generation,
            "pop_size": len(ranked),
            "width": self.pop.width,
            "height": self.pop.height,
            "num_polygons": self.pop.num_polygons,
            "best_fitness": ranked[0].fitness,
            "fitness": [c.fitness for c in ranked],
        }

    def save_best(self) -> dict:
        gen = self.pop.generation
        best_idx = self.pop.candidates.index(self.pop.best)
        json_path = self.pop.save_candidate(best_idx, self.output_dir / f"best_{gen:05d}.json")
        png_path = save_png(self.pop.candidates[best_idx], self.output_dir / f"best_{gen:05d}.png")
        logger.info("Saved best candidate to {}", json_path)
        return {"json": str(json_path), "png": str(png_path)}


state = AppState()


def _decode_image(b64: str) -> Image.Image:
    data = base64.b64decode(b64, validate=True)
    return Image.open(io.BytesIO(data)).convert("RGB")


def _no_population() -> JSONResponse:
    return JSONResponse({"error": "No population; POST /api/reset first"}, status_code=400)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class ResetRequest(BaseModel):
    image: str
    max_size: int = Field(128, ge=1)
    pop_size: int = Field(POPULATION_COUNT, ge=1)
    num_polygons: int = Field(POLYGONS_PER_INDIVIDUAL, ge=1)
    mutation_chance: float = Field(MUTATION_CHANCE, ge=0.0, le=1.0)
    elitism: int = Field(2, ge=0)
    seed: int | None = None


class EvolveRequest(BaseModel):
    generations: int = Field(1, ge=1, le=10_000)


# ---------------------------------------------------------------------------
# API routes
# ---------------------------------------------------------------------------

@app.post("/api/reset")
def api_reset(req: ResetRequest):
    try:
        target = _decode_image(req.image)
    except (ValueError, OSError) as e:
        return JSONResponse({"error": f"Invalid image: {e}"}, status_code=400)

    if max(target.size) > req.max_size:
        target.thumbnail((req.max_size, req.max_size), Image.LANCZOS)

    state.reset(target, {
        "pop_size": req.pop_size,
        "num_polygons": req.num_polygons,
        "mutation_chance": req.mutation_chance,
        "elitism": req.elitism,
        "seed": req.seed,
    })
    return JSONResponse(state.get_state_payload())


@app.get("/api/state")
def api_state():
    if state.pop is None:
        return _no_population()
    return JSONResponse(state.get_state_payload())


@app.post("/api/evolve")
def api_evolve(req: EvolveRequest):
    if state.pop is None:
        return _no_population()
    state.evolve(req.generations)
    return JSONResponse(state.get_state_payload())


@app.get("/api/best.png")
def api_best_png():
    if state.pop is None:
        return _no_population()
    buf = io.BytesIO()
    state.pop.best.image.save(buf, format="PNG")
    buf.seek(0)
    return StreamingResponse(buf, media_type="image/png")


@app.get("/api/candidate/{index}")
def api_candidate(index: int):
    if state.pop is None:
        return _no_population()
    ranked = state.pop.rank()
    if not (0 <= index < len(ranked)):
        return JSONResponse({"error": "Invalid index"}, status_code=400)
    return JSONResponse(ranked[index].to_dict())


@app.post("/api/save")
def api_save():
    if state.pop is None:
        return _no_population()
    return JSONResponse(state.save_best())


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn
    logger.info("Starting server at http://localhost:8000")
    uvicorn.run(app, host="0.0.0.0", port=8000)
