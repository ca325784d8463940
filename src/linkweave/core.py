"""The rebuild pipeline: locate documents, extract links, aggregate.

Everything here is free of shared state so it can run on a worker thread;
the result is handed back as one immutable snapshot plus a report.
"""

import logging
import time
from datetime import datetime, timezone
from pathlib import Path

from .backlinks_index import BacklinkIndex, aggregate
from .config import Settings
from .corpus import Corpus
from .errors import DocumentParseFailure, ErrorCode
from .models import BuildReport, LinkRecord, SkippedDocument
from .parser import extract_links

log = logging.getLogger(__name__)


def corpus_from_settings(settings: Settings) -> Corpus:
    return Corpus(settings.root, settings.extension)


def collect_links(corpus: Corpus, paths: list[Path], report: BuildReport) -> list[LinkRecord]:
    """Extract links from every path, isolating per-document failures.

    Failed documents contribute no links and are recorded on the report.
    """
    records: list[LinkRecord] = []

    for path in paths:
        try:
            records.extend(extract_links(path, corpus.extension, corpus.root))
        except DocumentParseFailure as e:
            log.warning("[%s] Skipping %s: %s", e.code.value, path, e.reason)
            report.skipped.append(SkippedDocument(path=str(path), reason=e.reason))

    return records


def build_index(corpus: Corpus) -> tuple[BacklinkIndex, BuildReport]:
    """Run the full pipeline once and return a fresh snapshot.

    A missing root yields an empty snapshot; it is flagged on the report,
    not raised.
    """
    started = time.perf_counter()
    report = BuildReport(root=str(corpus.root))

    if not corpus.root.is_dir():
        log.warning("[%s] Corpus root does not exist: %s", ErrorCode.CORPUS_ROOT_MISSING.value, corpus.root)
        report.root_missing = True

    paths = corpus.list_documents()
    records = collect_links(corpus, paths, report)
    index = aggregate((record.as_triple() for record in records), corpus)

    report.documents = len(paths)
    report.links = index.link_count()
    report.targets = len(index)
    report.duration_seconds = time.perf_counter() - started
    report.finished_at = datetime.now(timezone.utc)

    log.info(
        "Indexed %d documents: %d links to %d targets (%d skipped) in %.2fs",
        report.documents,
        report.links,
        report.targets,
        len(report.skipped),
        report.duration_seconds,
    )
    return index, report
