"""Output formatting for search results and feature content."""

import csv
import io
import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from .content_aggregator import ContentMode
from .models import FeatureContent, SearchResult

FORMATS = ('tsv', 'csv', 'json')


class OutputFormatter:
    """Renders search results and content as TSV, CSV or JSON."""

    # Column headers
    RESULT_COLUMNS = [
        "ID",
        "Name",
        "Type",
        "Location",
        "Track"
    ]

    CONTENT_COLUMNS = [
        "Item",
        "Label",
        "Type"
    ]

    def __init__(self, format: str = 'tsv'):
        """
        Initialize the formatter.

        Args:
            format: Output format ('tsv', 'csv', 'json')
        """
        if format not in FORMATS:
            raise ValueError(f"Unsupported format: {format}")
        self.format = format

    def result_row(self, result: SearchResult) -> Dict[str, str]:
        """Format a single search result as a table row."""
        return {
            'ID': result.id,
            'Name': result.name,
            'Type': result.type,
            'Location': result.location,
            'Track': result.track_id or ''
        }

    def content_rows(self, content: FeatureContent) -> List[Dict[str, str]]:
        """Split aligned content strings back into one row per item."""
        items = [v for v in content.primary.split(',') if v]
        labels = content.labels.split(',') if content.labels else []
        types = content.types.split(',') if content.types else []

        rows = []
        for i, item in enumerate(items):
            rows.append({
                'Item': item,
                'Label': labels[i] if i < len(labels) else '',
                'Type': types[i] if i < len(types) else ''
            })
        return rows

    def format_results(self,
                       results: Iterable[SearchResult],
                       tier: Optional[str] = None,
                       query: Optional[str] = None) -> str:
        """
        Render search results.

        Args:
            results: Results to render
            tier: Search tier that produced them, reported in JSON metadata
            query: Query text, reported in JSON metadata

        Returns:
            The rendered document
        """
        results = list(results)

        if self.format == 'json':
            output = {
                'metadata': {
                    'generated_at': datetime.now().isoformat(),
                    'query': query,
                    'tier': tier,
                    'count': len(results)
                },
                'results': [r.to_dict() for r in results]
            }
            return json.dumps(output, indent=2, default=str)

        return self._render_table(self.RESULT_COLUMNS, [self.result_row(r) for r in results])

    def format_content(self,
                       content: FeatureContent,
                       mode: ContentMode,
                       feature_id: Optional[str] = None) -> str:
        """Render the content selected for one feature."""
        if self.format == 'json':
            output = {
                'metadata': {
                    'generated_at': datetime.now().isoformat(),
                    'feature_id': feature_id,
                    'mode': mode.name
                },
                'content': mode.as_dict(content)
            }
            return json.dumps(output, indent=2)

        return self._render_table(self.CONTENT_COLUMNS, self.content_rows(content))

    def write(self, text: str, output_path: Union[str, Path], excel_compatible: bool = False) -> None:
        """Write rendered output to file, with a UTF-8 BOM for Excel when asked."""
        encoding = 'utf-8-sig' if excel_compatible and self.format != 'json' else 'utf-8'
        with open(output_path, 'w', encoding=encoding, newline='') as f:
            f.write(text)

    def _render_table(self, columns: List[str], rows: List[Dict[str, Any]]) -> str:
        buffer = io.StringIO()
        delimiter = '\t' if self.format == 'tsv' else ','
        writer = csv.DictWriter(buffer, fieldnames=columns, delimiter=delimiter, lineterminator='\n')
        writer.writeheader()
        writer.writerows(rows)
        return buffer.getvalue()
