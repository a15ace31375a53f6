#!/usr/bin/env python3
"""
Export a document JSON file to PDF through a running InvoiceMax API.

Renders the preview first (exports rasterize whatever the board holds), then
downloads the PDF. Optionally emails it instead of saving.

Usage:
    python export_document.py receipt.json --user demo
    python export_document.py invoice.json --user demo --save --out ./pdfs
    python export_document.py invoice.json --user demo --email client@example.com
"""
import argparse
import json
import os
import sys
from pathlib import Path
from urllib.parse import unquote
import requests

# Configuration
API_BASE_URL = os.environ.get("INVOICEMAX_API_URL", "http://127.0.0.1:8000")


def render_preview(document: dict, headers: dict) -> bool:
    response = requests.post(f"{API_BASE_URL}/documents/preview", json=document, headers=headers, timeout=30)
    if response.status_code != 200:
        print(f"❌ PREVIEW FAILED: {response.status_code} - {response.text}")
        return False
    print(f"✓ Preview rendered ({len(response.text):,} chars)")
    return True


def attachment_filename(disposition: str) -> str:
    """Prefer the UTF-8 filename* parameter, fall back to the quoted ASCII name."""
    params = dict(
        part.strip().split("=", 1) for part in disposition.split(";") if "=" in part
    )
    if params.get("filename*", "").lower().startswith("utf-8''"):
        name = unquote(params["filename*"][7:])
    else:
        name = params.get("filename", "").strip('"')
    return Path(name).name or "document.pdf"


def export_pdf(document: dict, headers: dict, out_dir: Path, save: bool) -> Path | None:
    response = requests.post(
        f"{API_BASE_URL}/documents/export",
        params={"destination": "file", "save": str(save).lower()},
        json={"document": document},
        headers=headers,
        timeout=120,
    )
    if response.status_code != 200:
        print(f"❌ EXPORT FAILED: {response.status_code} - {response.text}")
        return None

    filename = attachment_filename(response.headers.get("Content-Disposition", ""))
    out_dir.mkdir(parents=True, exist_ok=True)
    target = out_dir / filename
    target.write_bytes(response.content)

    print(f"✅ SAVED: {target} ({response.headers.get('X-Page-Count', '?')} page(s), {len(response.content):,} bytes)")
    if response.headers.get("X-Record-Id"):
        print(f"   History record: {response.headers['X-Record-Id']}")
    return target


def email_pdf(document: dict, headers: dict, recipient: str) -> bool:
    response = requests.post(
        f"{API_BASE_URL}/documents/email",
        json={"recipient_email": recipient, "document": document},
        headers=headers,
        timeout=120,
    )
    data = response.json() if response.headers.get("content-type", "").startswith("application/json") else {}
    if response.status_code != 200:
        print(f"❌ EMAIL FAILED: {response.status_code} - {data.get('message', response.text)}")
        return False
    print(f"📧 SENT: {data['message']} (id: {data.get('email_id')})")
    return True


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Export an invoice or receipt to PDF")
    parser.add_argument("document", type=Path, help="Path to the document JSON")
    parser.add_argument("--user", required=True, help="User id sent as X-User-Id")
    parser.add_argument("--out", type=Path, default=Path("."), help="Directory for the PDF (default: .)")
    parser.add_argument("--save", action="store_true", help="Also store the document in history")
    parser.add_argument("--email", metavar="ADDRESS", help="Email the PDF to this address instead of saving")
    args = parser.parse_args(argv)

    document = json.loads(args.document.read_text(encoding="utf-8"))
    headers = {"X-User-Id": args.user}

    print(f"API Endpoint: {API_BASE_URL}")
    print(f"Document: {document.get('kind', 'invoice')} {document.get('invoice_number') or '(no number)'}")
    print("-" * 70)

    if not render_preview(document, headers):
        return 1
    if args.email:
        return 0 if email_pdf(document, headers, args.email) else 1
    return 0 if export_pdf(document, headers, args.out, args.save) else 1


if __name__ == "__main__":
    sys.exit(main())
