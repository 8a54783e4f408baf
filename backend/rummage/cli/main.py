"""CLI entrypoint for Rummage."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import List, Optional

import requests
import typer

from rummage.core.errors import PathError
from rummage.services.commands import select_directory

app = typer.Typer(name="rummage", help="Rummage command-line interface")
meta_app = typer.Typer(name="meta")
app.add_typer(meta_app, name="meta")

DEFAULT_HOST = "http://127.0.0.1:5173"


def _resolve_host(override: Optional[str]) -> str:
    if override:
        return override.rstrip('/')
    env_host = os.environ.get("RUMMAGE_HOST")
    if env_host:
        return env_host.rstrip('/')
    return DEFAULT_HOST


def _request(method: str, path: str, host: Optional[str] = None, **kwargs) -> requests.Response:
    base = _resolve_host(host)
    url = f"{base}{path}"
    resp = requests.request(method, url, timeout=600, **kwargs)
    if not resp.ok:
        try:
            detail = resp.json()
        except ValueError:
            detail = resp.text
        typer.echo(f"Request failed ({resp.status_code}): {detail}", err=True)
        raise typer.Exit(code=1)
    return resp


def _echo(resp: requests.Response) -> None:
    typer.echo(json.dumps(resp.json(), indent=2))


def _read_vector(path: Path) -> list[float]:
    with path.expanduser().open("r", encoding="utf-8") as fh:
        data = json.load(fh)
    if not isinstance(data, list):
        typer.echo("Vector file must contain a JSON array of numbers", err=True)
        raise typer.Exit(code=1)
    return [float(value) for value in data]


@app.command()
def scan(
    path: Optional[Path] = typer.Argument(None, help="Directory to scan; prompts when omitted"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Scan a directory and index its files."""
    try:
        chosen = select_directory(
            lambda: path.resolve() if path else typer.prompt("Directory to scan", default="", show_default=False)
        )
    except PathError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)
    if chosen is None:
        typer.echo("No directory selected")
        raise typer.Exit(code=0)
    resp = _request("POST", "/scan", host=host, json={"path": chosen})
    _echo(resp)
    if not resp.json().get("success"):
        raise typer.Exit(code=1)


@app.command()
def cancel(
    scan_id: Optional[int] = typer.Option(None, "--scan-id", help="Cancel one scan; all when omitted"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Cancel active scans."""
    _echo(_request("POST", "/scan/cancel", host=host, json={"scan_id": scan_id}))


@app.command()
def search(
    mime: Optional[List[str]] = typer.Option(None, "--mime", help="MIME type filter; repeatable"),
    min_size: Optional[int] = typer.Option(None, "--min-size", help="Minimum size in bytes"),
    max_size: Optional[int] = typer.Option(None, "--max-size", help="Maximum size in bytes"),
    text: Optional[str] = typer.Option(None, "--text", help="Substring of the file name or path"),
    limit: Optional[int] = typer.Option(None, "--limit", help="Maximum number of results"),
    offset: Optional[int] = typer.Option(None, "--offset", help="Skip this many results"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Search indexed files."""
    payload: dict[str, object] = {}
    if mime:
        payload["mime_types"] = list(mime)
    if min_size is not None:
        payload["size_min"] = min_size
    if max_size is not None:
        payload["size_max"] = max_size
    if text:
        payload["text_query"] = text
    if limit is not None:
        payload["limit"] = limit
    if offset is not None:
        payload["offset"] = offset
    _echo(_request("POST", "/files/search", host=host, json=payload))


@app.command()
def show(
    file_id: int = typer.Argument(..., help="Indexed file id"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Show a file record with live stat details."""
    _echo(_request("GET", f"/files/{file_id}", host=host))


@app.command()
def history(
    limit: int = typer.Option(10, "--limit", help="Number of entries"),
    directory: Optional[str] = typer.Option(None, "--directory", help="Only scans of this directory"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """List recent scans."""
    params: dict[str, object] = {"limit": limit}
    if directory:
        params["directory"] = directory
    _echo(_request("GET", "/history", host=host, params=params))


@app.command()
def similar(
    vector_file: Path = typer.Argument(..., help="JSON file holding the query vector"),
    image: bool = typer.Option(False, "--image", help="Query with an image embedding"),
    limit: int = typer.Option(10, "--limit", help="Number of results"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Find files whose embeddings are nearest to a vector."""
    route = "/similar/images" if image else "/similar/text"
    _echo(_request("POST", route, host=host, json={"vector": _read_vector(vector_file), "limit": limit}))


@app.command()
def embed(
    file_id: int = typer.Argument(..., help="Indexed file id"),
    vector_file: Path = typer.Argument(..., help="JSON file holding the embedding"),
    image: bool = typer.Option(False, "--image", help="Store as an image embedding"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Attach an embedding to a file."""
    route = "/embeddings/image" if image else "/embeddings/text"
    _echo(_request("POST", route, host=host, json={"file_id": file_id, "vector": _read_vector(vector_file)}))


@app.command()
def version(
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Print the backend version."""
    _echo(_request("GET", "/version", host=host))


@meta_app.command("schema")
def schema_version(
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Print the applied schema version."""
    _echo(_request("GET", "/meta/schema-version", host=host))


@meta_app.command("set")
def set_meta(
    key: str = typer.Argument(..., help="Metadata key"),
    value: str = typer.Argument(..., help="Metadata value"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Store an application metadata value."""
    _echo(_request("PUT", f"/meta/{key}", host=host, json={"value": value}))


if __name__ == "__main__":
    app()
