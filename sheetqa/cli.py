"""Lightweight CLI client for the sheetqa API."""
from __future__ import annotations

import argparse
from typing import Any, List, Mapping, Optional

import httpx
from rich.console import Console
from rich.markup import escape

STATUS_QUESTION = "How many sheets are indexed?"

console = Console()


def _print_answer(body: Mapping[str, Any], *, show_evidence: bool) -> None:
    console.print(body.get("answer") or "", style="bold", markup=False)

    citations = body.get("citations") or []
    if citations:
        console.print()
        console.print("Sources", style="bold blue")
        for idx, citation in enumerate(citations, start=1):
            label = escape(str(citation.get("spreadsheet_title") or citation.get("spreadsheet_id")))
            console.print(
                f"  [yellow][{idx}][/] {label} "
                f"[dim]{escape(str(citation.get('sheet_name')))}!{citation.get('a1_range')}[/] {citation.get('url')}"
            )

    evidence = body.get("evidence") or []
    if show_evidence and evidence:
        console.print()
        console.print("Evidence", style="bold blue")
        for item in evidence:
            console.print(
                f"[yellow][{item.get('source')}][/] {escape(str(item.get('sheet_name')))} {item.get('a1_range')}".rstrip()
            )
            console.print(item.get("preview") or "", style="dim", markup=False)


def _post_ask(args: argparse.Namespace, payload: Mapping[str, Any]) -> int:
    api_base = args.api.rstrip("/")
    try:
        with httpx.Client(timeout=args.timeout) as client:
            response = client.post(f"{api_base}/api/v1/ask", json=dict(payload))
            response.raise_for_status()
            body = response.json()
    except httpx.HTTPError as exc:
        console.print(f"Request failed: {exc}", style="red")
        if hasattr(exc, "response") and exc.response is not None:
            try:
                error_detail = exc.response.json()
                console.print(f"Error detail: {error_detail}", markup=False)
            except ValueError:
                console.print(f"Response text: {exc.response.text}", markup=False)
        return 1

    _print_answer(body, show_evidence=getattr(args, "evidence", False))
    return 0


def _command_ask(args: argparse.Namespace) -> int:
    question = " ".join(args.question).strip()
    if not question:
        console.print("A question is required.", style="red")
        return 1
    payload: dict[str, Any] = {"messages": [{"role": "user", "content": question}]}
    if args.top_k is not None:
        payload["topK"] = args.top_k
    if args.sheet:
        payload["filterSpreadsheetId"] = args.sheet
    return _post_ask(args, payload)


def _command_status(args: argparse.Namespace) -> int:
    payload: dict[str, Any] = {"question": STATUS_QUESTION}
    if args.sheet:
        payload["filterSpreadsheetId"] = args.sheet
    return _post_ask(args, payload)


def _command_serve(args: argparse.Namespace) -> int:
    import uvicorn

    from app.config import settings

    uvicorn.run(
        "app.main:app",
        host=args.host or settings.api_host,
        port=args.port or settings.api_port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )
    return 0


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--api",
        default="http://localhost:8000",
        help="sheetqa API base URL (default: http://localhost:8000).",
    )
    parser.add_argument("--sheet", default=None, help="Restrict to one spreadsheet id.")
    parser.add_argument(
        "--timeout",
        type=float,
        default=60.0,
        help="HTTP timeout in seconds (default: 60).",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sheetqa",
        description="Ask questions about the indexed spreadsheets, or run the API.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    ask_parser = subparsers.add_parser("ask", help="Ask a question via /api/v1/ask.")
    ask_parser.add_argument("question", nargs="+", help="Question text.")
    ask_parser.add_argument("--top-k", "-k", type=int, default=None, help="Answer window hint.")
    ask_parser.add_argument(
        "--evidence", "-e", action="store_true", help="Print the evidence snippets too."
    )
    _add_common(ask_parser)
    ask_parser.set_defaults(func=_command_ask)

    status_parser = subparsers.add_parser("status", help="Show index coverage and crawl status.")
    status_parser.add_argument(
        "--evidence", "-e", action="store_true", help="List the per-spreadsheet status rows."
    )
    _add_common(status_parser)
    status_parser.set_defaults(func=_command_status)

    serve_parser = subparsers.add_parser("serve", help="Run the sheetqa API with uvicorn.")
    serve_parser.add_argument("--host", default=None, help="Bind address (default: SHEETQA_API_HOST).")
    serve_parser.add_argument("--port", type=int, default=None, help="Bind port (default: SHEETQA_API_PORT).")
    serve_parser.add_argument("--reload", action="store_true", help="Reload on code changes.")
    serve_parser.set_defaults(func=_command_serve)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
