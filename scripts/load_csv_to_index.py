from typing import Dict, Iterator, List, Mapping, Optional
from argparse import ArgumentParser
from pathlib import Path
import csv
import sys

from elasticsearch import Elasticsearch
from elasticsearch.helpers import bulk

from audience_api.config import get_settings
from audience_api.index_client import elastic_auth
from audience_api.location_expander import LOCATION_COLUMNS
from audience_api.logging_config import get_logger, init_logging

logger = get_logger(__name__)

# -----------------------------
#  mapping
# -----------------------------

#columns reconciled or filtered on: analysed text plus an exact sub-field
RECONCILED_COLUMNS = ["Job title", "Industry", "category", *sorted(LOCATION_COLUMNS)]

KEYWORD_SUBFIELD = {"keyword": {"type": "keyword", "ignore_above": 256}}

def build_mapping(headers: List[str]) -> Dict[str, object]:
    properties: Dict[str, object] = {}
    for header in filter(None, headers):
        properties[header] = {"type": "text", "fields": KEYWORD_SUBFIELD}
    return {"properties": properties}

# -----------------------------
#  row helpers
# -----------------------------

CSVRow = Mapping[str, Optional[str]]

def clean_value(raw: Optional[str]) -> Optional[str]:
    if not isinstance(raw, str):
        return None
    value = " ".join(raw.split())
    return value or None

def clean_row(row: CSVRow) -> Dict[str, str]:
    cleaned: Dict[str, str] = {}
    for header, raw in row.items():
        if header is None:
            continue
        value = clean_value(raw)
        if value is not None:
            cleaned[header.strip()] = value
    return cleaned

def iter_actions(csv_path: Path, index_name: str, limit: Optional[int]) -> Iterator[Dict[str, object]]:
    with csv_path.open(newline="", encoding="utf-8-sig") as handle:
        reader = csv.DictReader(handle)
        for n, row in enumerate(reader):
            if limit is not None and n >= limit:
                break
            doc = clean_row(row)
            if doc:
                yield {"_index": index_name, "_source": doc}

def read_headers(csv_path: Path) -> List[str]:
    with csv_path.open(newline="", encoding="utf-8-sig") as handle:
        return [h.strip() for h in next(csv.reader(handle), [])]

# -----------------------------
#  main
# -----------------------------

def main(argv: Optional[List[str]] = None) -> int:
    parser = ArgumentParser(description="Bulk-load a CSV of people or business records into the search index")
    parser.add_argument("csv_path", type=Path)
    parser.add_argument("--index", default=None, help="target index (default: INDEX_NAME)")
    parser.add_argument("--recreate", action="store_true", help="drop the index first if it exists")
    parser.add_argument("--limit", type=int, default=None, help="load at most this many rows")
    parser.add_argument("--debug", action="store_true")
    args = parser.parse_args(argv)

    init_logging(debug=args.debug)
    settings = get_settings()
    index_name = args.index or settings.index_name

    if not args.csv_path.exists():
        logger.error(f"CSV not found: {args.csv_path}")
        return 1

    headers = read_headers(args.csv_path)
    missing = [c for c in RECONCILED_COLUMNS if c not in headers]
    if missing:
        logger.warning(f"CSV has no column(s) {missing}; reconciliation on them will find nothing")

    with Elasticsearch(settings.elastic_url, request_timeout=120, retry_on_timeout=True, max_retries=3,
                       **elastic_auth(settings)) as es:
        if args.recreate and es.indices.exists(index=index_name):
            logger.info(f"Deleting existing index {index_name}")
            es.indices.delete(index=index_name)

        if not es.indices.exists(index=index_name):
            es.indices.create(index=index_name, mappings=build_mapping(headers))
            logger.info(f"Created index {index_name} with {len(headers)} fields")

        ok, errors = bulk(es, iter_actions(args.csv_path, index_name, args.limit), raise_on_error=False)

    logger.info(f"Indexed {ok} documents into {index_name}")
    if errors:
        logger.error(f"{len(errors)} documents failed to index")
        return 1

    return 0

if __name__ == "__main__":
    sys.exit(main())
