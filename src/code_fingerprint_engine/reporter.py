# Code Fingerprint Engine - Structural fingerprints for code similarity search
# Copyright (C) 2025  Jonathan Louis
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""
Report generator - formats search results and diagnostics for output.

Supports text, markdown, and json output formats for search results.
"""

from typing import List
from enum import Enum
import json

from .fingerprinter import FileFingerprint
from .ingest import BatchReport, IngestReport
from .models import SearchResult
from .similarity import similarity_table


class OutputFormat(Enum):
    TEXT = "text"
    MARKDOWN = "markdown"
    JSON = "json"


def report_search_results(
    results: List[SearchResult],
    output_format: OutputFormat = OutputFormat.TEXT,
) -> str:
    """
    Format nearest-neighbour results for a query file.

    Args:
        results: One SearchResult per query declaration
        output_format: Desired output format

    Returns:
        Formatted report string
    """
    if output_format == OutputFormat.TEXT:
        return _format_text(results)
    elif output_format == OutputFormat.MARKDOWN:
        return _format_markdown(results)
    elif output_format == OutputFormat.JSON:
        return _format_json(results)
    else:
        raise ValueError(f"Unknown format: {output_format}")


def _format_text(results: List[SearchResult]) -> str:
    """Plain text, one block per declaration of the query file."""
    blocks = []
    for result in results:
        parts = [result.query.raw_text]
        parts.extend(result.raw_texts)
        blocks.append("Provided function:\n " + "\n\n Embedding Match:\n".join(parts))
    return "\n".join(blocks)


def _format_markdown(results: List[SearchResult]) -> str:
    """Markdown format with fenced code blocks."""
    lines = ["# Structural Search Results", ""]

    if not results:
        lines.append("_No declarations found in the query file._")
        return "\n".join(lines)

    for i, result in enumerate(results, start=1):
        query = result.query
        lines.append(f"## {i}. `{query.preview(70)}`")
        lines.append("")
        lines.append(f"**Location:** `{query.location}`  ")
        lines.append(f"**Kind:** {query.kind}")
        lines.append("")
        lines.append("```go")
        lines.append(query.raw_text)
        lines.append("```")
        lines.append("")

        if not result.matches:
            lines.append("_No stored declarations._")
            lines.append("")
            continue

        for rank, match in enumerate(result.matches, start=1):
            lines.append(f"### Match {rank}: `{match.record.location}` (distance {match.distance:.4f})")
            lines.append("")
            lines.append("```go")
            lines.append(match.record.raw_text)
            lines.append("```")
            lines.append("")

    return "\n".join(lines)


def _format_json(results: List[SearchResult]) -> str:
    """JSON format for tooling."""
    data = []
    for result in results:
        query = result.query
        data.append({
            "query": {
                "source_file": query.source_file,
                "start_line": query.start_line,
                "end_line": query.end_line,
                "kind": query.kind,
                "canonical_string": query.canonical_string,
                "raw_text": query.raw_text,
            },
            "matches": [
                {
                    "id": m.record.record_id,
                    "source_file": m.record.source_file,
                    "start_line": m.record.start_line,
                    "end_line": m.record.end_line,
                    "distance": m.distance,
                    "raw_text": m.record.raw_text,
                }
                for m in result.matches
            ],
        })
    return json.dumps(data, indent=2)


def format_annotated_tree(fingerprint: FileFingerprint) -> str:
    """
    Indented outline of the named nodes of a file.

    Declaration roots also show their canonical string and term counts.
    """
    tree = fingerprint.tree
    if not len(tree):
        return ""

    frequencies = {d.node_id: d.frequencies for d in fingerprint.declarations}
    lines = []

    for node_id, depth in tree.preorder():
        if not tree.named[node_id]:
            continue
        indent = "  " * depth
        kind = tree.kinds[node_id]
        if node_id in frequencies:
            counts = dict(sorted(frequencies[node_id].items()))
            lines.append(f"{indent}<{kind}>:")
            lines.append(fingerprint.canonical_string(node_id))
            lines.append(str(counts))
        else:
            lines.append(f"{indent}<{kind}>")

    return "\n".join(lines)


def format_similarity_table(fingerprint: FileFingerprint) -> str:
    """Pairwise cosine similarity of a file's declarations."""
    declarations = fingerprint.declarations
    rows = similarity_table([d.frequencies for d in declarations])
    return "\n".join(
        f"{declarations[i].node_id}:{declarations[j].node_id}\t{score:f}"
        for i, j, score in rows
    )


def format_ingest_summary(report: IngestReport) -> List[str]:
    """Summary lines for a single-repository or single-file run."""
    lines = [
        f"   Files ingested: {report.files_ok}/{report.files_total}",
        f"   Declarations stored: {report.records}",
    ]
    if report.cancelled:
        lines.append(f"   Cancelled: {report.cancelled} files")
    for failure in report.failures:
        lines.append(f"   ❌ {failure.kind}: {failure.error}")
    return lines


def format_batch_summary(batch: BatchReport) -> List[str]:
    """Summary lines for a multi-repository run."""
    file_failures = batch.file_failures
    lines = [
        f"   Repositories ingested: {len(batch.repos)}/{len(batch.repos) + len(batch.failures) + batch.cancelled}",
        f"   Declarations stored: {batch.records}",
        f"   Files failed: {len(file_failures)}",
    ]
    if batch.cancelled:
        lines.append(f"   Cancelled: {batch.cancelled} repositories")
    for error in batch.failures:
        lines.append(f"   ❌ {type(error).__name__}: {error}")
    return lines
