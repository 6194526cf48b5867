import logging
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from . import config
from .generator import generate_dbml
from .models import Diagnostic, Schema, Severity
from .parser import parse_dbml
from .sample import SAMPLE_DBML

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="DB Studio API")

# CORS for the editor frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class TextRequest(BaseModel):
    text: str


class ParseResponse(BaseModel):
    # "schema" would shadow a BaseModel attribute
    schema_data: Optional[Schema] = None
    diagnostics: list[Diagnostic] = []
    error_count: int = 0


class GenerateRequest(BaseModel):
    schema_data: Schema


class TextResponse(BaseModel):
    text: str


def count_errors(diagnostics: list[Diagnostic]) -> int:
    return sum(1 for d in diagnostics if d.severity == Severity.ERROR)


@app.post("/parse", response_model=ParseResponse)
async def parse(request: TextRequest):
    schema, diagnostics = parse_dbml(request.text)
    logger.info("Parsed %d chars with %d diagnostics", len(request.text), len(diagnostics))
    return ParseResponse(
        schema_data=schema,
        diagnostics=diagnostics,
        error_count=count_errors(diagnostics),
    )


@app.post("/generate", response_model=TextResponse)
async def generate(request: GenerateRequest):
    return TextResponse(text=generate_dbml(request.schema_data))


@app.post("/format", response_model=TextResponse)
async def format_text(request: TextRequest):
    schema, diagnostics = parse_dbml(request.text)
    if schema is None:
        messages = [f"{d.line}:{d.column}: {d.message}" for d in diagnostics]
        raise HTTPException(status_code=400, detail=messages)
    return TextResponse(text=generate_dbml(schema))


@app.get("/sample", response_model=TextResponse)
async def sample():
    return TextResponse(text=SAMPLE_DBML)


@app.get("/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.HOST, port=config.PORT)
