"""Shared fixtures: configs rooted in tmp_path, fake tool executables, PDFs."""

import stat
from pathlib import Path

import pytest

from convert_service.config import RunMode, ServiceConfig


@pytest.fixture
def make_config(tmp_path):
    def _make(**overrides) -> ServiceConfig:
        values = {
            "storage_root": tmp_path / "storage",
            "soffice_path": None,
            "run_mode": RunMode.TEST,
            "workers": 1,
            "tool_timeout_sec": 10,
        }
        values.update(overrides)
        return ServiceConfig(**values)

    return _make


@pytest.fixture
def fake_tool(tmp_path):
    """Write an executable /bin/sh script and return its path."""

    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()

    def _write(name: str, body: str) -> str:
        script = bin_dir / name
        script.write_text("#!/bin/sh\n" + body + "\n", encoding="utf-8")
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return str(script)

    return _write


@pytest.fixture
def recording_pandoc(fake_tool, tmp_path):
    """A pandoc stand-in that logs its arguments and copies input to output."""
    args_file = tmp_path / "pandoc-args.txt"
    path = fake_tool("pandoc", f'printf "%s\\n" "$@" > "{args_file}"\ncp "$5" "$7"')
    return path, args_file


def make_pdf(pages: list[str]) -> bytes:
    """Assemble a minimal PDF with one line of Helvetica text per page."""
    n = len(pages)
    font_num = 3 + 2 * n
    kids = " ".join(f"{3 + 2 * i} 0 R" for i in range(n))
    objects = [
        "<< /Type /Catalog /Pages 2 0 R >>",
        f"<< /Type /Pages /Kids [{kids}] /Count {n} >>",
    ]
    for i, text in enumerate(pages):
        objects.append(
            "<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
            f"/Resources << /Font << /F1 {font_num} 0 R >> >> /Contents {4 + 2 * i} 0 R >>"
        )
        stream = f"BT /F1 24 Tf 72 700 Td ({text}) Tj ET"
        objects.append(f"<< /Length {len(stream)} >>\nstream\n{stream}\nendstream")
    objects.append("<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>")

    out = b"%PDF-1.4\n"
    offsets = []
    for num, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += f"{num} 0 obj\n{body}\nendobj\n".encode("latin-1")
    xref = len(out)
    out += f"xref\n0 {len(objects) + 1}\n0000000000 65535 f \n".encode("latin-1")
    for offset in offsets:
        out += f"{offset:010d} 00000 n \n".encode("latin-1")
    out += f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\nstartxref\n{xref}\n%%EOF\n".encode("latin-1")
    return out


@pytest.fixture
def pdf_file(tmp_path) -> Path:
    path = tmp_path / "report.pdf"
    path.write_bytes(make_pdf(["Hello page one", "Second page"]))
    return path
