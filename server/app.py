"""
FastAPI application for the Mermaid converter.

Provides a small web UI and REST API for parsing, validating and converting
Mermaid diagrams to Draw.io XML and Markdown documentation, plus an HTML
preview of the generated documentation.
"""

from __future__ import annotations

import sys
from contextlib import asynccontextmanager
from dataclasses import asdict
from pathlib import Path

import markdown
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, Response
from fastapi.templating import Jinja2Templates

from mermaid_convert.config import get_settings, load_env
from mermaid_convert.diagram_ast import to_json
from mermaid_convert.drawio_writer import to_drawio
from mermaid_convert.layout import layout_diagram
from mermaid_convert.markdown_writer import to_markdown
from mermaid_convert.mermaid_parser import DiagramParseError, parse_mermaid
from mermaid_convert.validator import validate_mermaid

load_env()


@asynccontextmanager
async def lifespan(_app: FastAPI):
    settings = get_settings()
    print(f"[app] Mermaid converter ready (default diagram name: {settings.diagram_name!r})",
          file=sys.stderr)
    yield
    print("[app] Shutdown complete", file=sys.stderr)


app = FastAPI(title="Mermaid Converter", lifespan=lifespan)

templates_dir = Path(__file__).parent / "templates"
templates = Jinja2Templates(directory=str(templates_dir))


# ──────────────────────────────────────────────────────────────────
# HTML UI
# ──────────────────────────────────────────────────────────────────

@app.get("/", response_class=HTMLResponse)
async def index(request: Request):
    return templates.TemplateResponse(request, "index.html", {"title": app.title})


def _md_to_html(md_content: str) -> str:
    return markdown.markdown(md_content, extensions=["tables", "fenced_code", "toc"])


# ──────────────────────────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────────────────────────

async def _read_code(request: Request) -> tuple[str, str | None]:
    """Return (code, name) from a JSON body; 400 when code is missing."""
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Request body must be JSON")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")
    code = body.get("code")
    if not code or not isinstance(code, str):
        raise HTTPException(status_code=400, detail="code is required")
    return code, body.get("name")


def _parse_or_400(code: str):
    try:
        return parse_mermaid(code)
    except DiagramParseError as exc:
        print(f"[app] Parse failed: {exc}", file=sys.stderr)
        raise HTTPException(status_code=400, detail=str(exc))


# ──────────────────────────────────────────────────────────────────
# REST API
# ──────────────────────────────────────────────────────────────────

@app.get("/api/health")
async def health():
    return JSONResponse(content={"status": "ok"})


@app.post("/api/parse")
async def parse(request: Request):
    """Parse Mermaid code and return the AST together with computed positions."""
    code, _ = await _read_code(request)
    diagram = _parse_or_400(code)
    positions = {node_id: asdict(pos) for node_id, pos in layout_diagram(diagram).items()}
    return JSONResponse(content={"diagram": to_json(diagram), "positions": positions})


@app.post("/api/validate")
async def validate(request: Request):
    code, _ = await _read_code(request)
    result = validate_mermaid(code)
    return JSONResponse(content=result.to_dict())


@app.post("/api/convert/drawio")
async def convert_drawio(request: Request):
    code, name = await _read_code(request)
    diagram = _parse_or_400(code)
    xml = to_drawio(diagram, name=name or get_settings().diagram_name)
    print(f"[app] Converted {diagram.diagram_type} ({len(diagram.nodes)} nodes) to Draw.io",
          file=sys.stderr)
    return Response(content=xml, media_type="application/xml")


@app.post("/api/convert/markdown")
async def convert_markdown(request: Request):
    code, _ = await _read_code(request)
    diagram = _parse_or_400(code)
    return Response(content=to_markdown(diagram, code), media_type="text/markdown")


@app.post("/api/preview", response_class=HTMLResponse)
async def preview(request: Request):
    """Markdown documentation rendered as HTML."""
    code, _ = await _read_code(request)
    diagram = _parse_or_400(code)
    return HTMLResponse(content=_md_to_html(to_markdown(diagram, code)))


# ──────────────────────────────────────────────────────────────────
# Entrypoint
# ──────────────────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run("server.app:app", host=settings.server_host, port=settings.server_port, reload=True)
