import math
import time
import logging
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from typing import Dict, Optional, List

from Calculus.compute import (
    compute_derivative, compute_integral, compute_limit, compute_series,
)
from Calculus.evaluator import evaluate
from Calculus.parser import parse_expression

# Random expression generator
from generate_expression import generate_random_expression

# -------------------------------------------------------------------
# Setup
# -------------------------------------------------------------------
logging.basicConfig(level=logging.DEBUG)
logger = logging.getLogger(__name__)

app = FastAPI()

ALLOWED_ORIGINS = [
    "http://localhost:5173",
    "http://localhost:4000",
    "https://*.vercel.app",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Presentation-layer bounds; the engine itself only rejects negative orders.
MIN_DERIVATIVE_ORDER = 1
MAX_DERIVATIVE_ORDER = 10
MIN_SERIES_ORDER = 0
MAX_SERIES_ORDER = 7

STARTED_AT = time.time()

# -------------------------------------------------------------------
# Symbol Normalization (π → pi, √ → sqrt, ∞ → inf)
# -------------------------------------------------------------------
def normalize_expression(expr: str):
    if not expr:
        return expr
    expr = expr.replace("π", "pi")
    expr = expr.replace("√", "sqrt")
    expr = expr.replace("∞", "inf")
    return expr

# -------------------------------------------------------------------
# Render Health Endpoints
# -------------------------------------------------------------------
@app.get("/ping")
async def ping():
    logger.info("🔔 Uptime ping received")
    return {"status": "ok", "message": "Backend is alive"}

@app.get("/uptime")
async def uptime():
    logger.info("🟢 UptimeRobot pinged this server.")
    return {"status": "alive", "uptime_seconds": time.time() - STARTED_AT}

# -------------------------------------------------------------------
# Pydantic Models
# -------------------------------------------------------------------
class ExpressionInput(BaseModel):
    expression: str
    variable: str = 'x'


class DerivativeInput(ExpressionInput):
    order: int = 1


class LimitInput(ExpressionInput):
    point: str = '0'
    direction: str = 'both'


class SeriesInput(ExpressionInput):
    point: str = '0'
    order: int = 3


class EvaluationInput(BaseModel):
    expression: str
    scope: Dict[str, float] = {}


class GenerationInput(BaseModel):
    num_terms: Optional[int] = 3
    max_depth: Optional[int] = 2
    variables: Optional[List[str]] = ['x']

# -------------------------------------------------------------------
# Error Translation
# -------------------------------------------------------------------
def run_engine(label, operation):
    """Engine failures (CalculusError is a ValueError) become 400s; anything else is a 500."""
    try:
        return operation()
    except ValueError as e:
        logger.debug(f"{label} rejected: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Unexpected {label} error", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Unexpected server error: {str(e)}"
        )

# -------------------------------------------------------------------
# API Endpoints
# -------------------------------------------------------------------
@app.post("/differentiate")
async def differentiate_endpoint(input_data: DerivativeInput):
    if not MIN_DERIVATIVE_ORDER <= input_data.order <= MAX_DERIVATIVE_ORDER:
        raise HTTPException(status_code=400, detail="Order must be a positive integer between 1 and 10")

    expression = normalize_expression(input_data.expression)
    logger.debug(f"Differentiate request (normalized): {expression}")
    return run_engine(
        "differentiation",
        lambda: compute_derivative(expression, input_data.variable, input_data.order),
    )

@app.post("/integrate")
async def integrate_endpoint(input_data: ExpressionInput):
    expression = normalize_expression(input_data.expression)
    logger.debug(f"Integrate request (normalized): {expression}")
    return run_engine(
        "integration",
        lambda: compute_integral(expression, input_data.variable),
    )

@app.post("/limit")
async def limit_endpoint(input_data: LimitInput):
    expression = normalize_expression(input_data.expression)
    point = normalize_expression(input_data.point)
    logger.debug(f"Limit request (normalized): {expression} as {input_data.variable} -> {point}")
    return run_engine(
        "limit",
        lambda: compute_limit(expression, input_data.variable, point, input_data.direction),
    )

@app.post("/series")
async def series_endpoint(input_data: SeriesInput):
    if not MIN_SERIES_ORDER <= input_data.order <= MAX_SERIES_ORDER:
        raise HTTPException(status_code=400, detail="Order must be between 0 and 7 for series expansion")

    expression = normalize_expression(input_data.expression)
    point = normalize_expression(input_data.point)
    logger.debug(f"Series request (normalized): {expression} around {point}")
    return run_engine(
        "series",
        lambda: compute_series(expression, input_data.variable, point, input_data.order),
    )

@app.post("/evaluate")
async def evaluate_endpoint(input_data: EvaluationInput):
    expression = normalize_expression(input_data.expression)
    value = run_engine(
        "evaluation",
        lambda: evaluate(parse_expression(expression), input_data.scope),
    )
    if not math.isfinite(value):
        raise HTTPException(status_code=400, detail="Result is not a finite number")
    return {"value": value}

@app.post("/generate")
async def generate_expression_endpoint(input_data: GenerationInput):
    try:
        expr_sym, expr_str, expr_latex = generate_random_expression(
            variables=input_data.variables,
            num_terms=input_data.num_terms,
            max_depth=input_data.max_depth
        )

        return {
            "expression_string": expr_str,
            "expression_latex": expr_latex
        }

    except Exception as e:
        logger.error("Generation error", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Generation failed: {str(e)}"
        )
