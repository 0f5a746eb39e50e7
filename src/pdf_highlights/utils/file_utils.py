"""
File Utilities - Common file handling functions
"""

import json
import shutil
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging
import chardet

from ..core.models import Highlight, HighlightKind, Rect, Size

logger = logging.getLogger(__name__)

DUMP_FORMAT_VERSION = 1


def detect_file_encoding(file_path: str) -> str:
    """
    Detect the encoding of a text file

    Args:
        file_path: Path to the file

    Returns:
        Detected encoding name
    """
    try:
        with open(file_path, 'rb') as f:
            raw_data = f.read(10000)  # Read first 10KB
    except OSError as e:
        logger.warning(f"Error detecting encoding for {file_path}: {e}")
        return 'utf-8'

    result = chardet.detect(raw_data)
    encoding = result.get('encoding') or 'utf-8'
    confidence = result.get('confidence') or 0

    logger.debug(f"Detected encoding for {file_path}: {encoding} (confidence: {confidence:.2f})")

    # ascii is a subset of utf-8; low confidence falls back to utf-8 too
    if confidence < 0.5 or encoding.lower() == 'ascii':
        return 'utf-8'
    return encoding


def safe_read_text_file(file_path: str, encoding: Optional[str] = None) -> str:
    """
    Read a text file, detecting its encoding when none is given

    Args:
        file_path: Path to the file
        encoding: Specific encoding to use (optional)

    Returns:
        File contents as string
    """
    if not encoding:
        encoding = detect_file_encoding(file_path)

    try:
        with open(file_path, 'r', encoding=encoding) as f:
            return f.read()
    except UnicodeDecodeError:
        for fallback in ['utf-8', 'cp1252', 'latin-1']:
            if fallback == encoding:
                continue
            try:
                with open(file_path, 'r', encoding=fallback) as f:
                    text = f.read()
                logger.warning(f"Used fallback encoding {fallback} for {file_path}")
                return text
            except UnicodeDecodeError:
                continue
        raise


def ensure_directory_exists(directory_path: str) -> None:
    """Create a directory (and its parents) if it does not exist yet"""
    Path(directory_path).mkdir(parents=True, exist_ok=True)


def create_backup(file_path: str, backup_suffix: str = ".backup") -> Optional[str]:
    """
    Create a backup of a file

    Args:
        file_path: Path to the original file
        backup_suffix: Suffix to add to backup filename

    Returns:
        Path to backup file, or None if there was nothing to back up
    """
    original_path = Path(file_path)
    if not original_path.exists():
        return None

    backup_path = original_path.with_suffix(original_path.suffix + backup_suffix)
    shutil.copy2(file_path, str(backup_path))
    logger.info(f"Created backup: {backup_path}")
    return str(backup_path)


def clean_filename(filename: str) -> str:
    """
    Clean a filename to make it safe for file system

    Args:
        filename: Original filename

    Returns:
        Cleaned filename
    """
    invalid_chars = '<>:"/\\|?*'
    cleaned = filename
    for char in invalid_chars:
        cleaned = cleaned.replace(char, '_')

    cleaned = cleaned.strip(' .')
    if len(cleaned) > 200:
        cleaned = cleaned[:200]
    return cleaned


def owner_key_for(pdf_path: str) -> str:
    """Default owner key of a PDF: its cleaned file stem"""
    return clean_filename(Path(pdf_path).stem) or "document"


def highlight_to_record(highlight: Highlight) -> Dict[str, Any]:
    """Full JSON record of a highlight, local fields included"""
    return {
        "id": highlight.id,
        "owner_key": highlight.owner_key,
        "page": highlight.page,
        "kind": highlight.kind.value,
        "rects": [r.to_dict() for r in highlight.rects],
        "color": highlight.color,
        "text": highlight.text,
        "base_size": highlight.base_size.to_dict() if highlight.base_size else None,
        "remote_id": highlight.remote_id,
        "created_at": highlight.created_at,
        "synced": highlight.synced,
        "geometry_version": highlight.geometry_version,
    }


def highlight_from_record(record: Dict[str, Any], owner_key: Optional[str] = None) -> Highlight:
    """Inverse of :func:`highlight_to_record`; ``owner_key`` overrides the stored owner"""
    return Highlight(
        id=record["id"],
        owner_key=owner_key or record["owner_key"],
        page=int(record["page"]),
        kind=HighlightKind(record["kind"]),
        rects=[Rect.from_dict(r) for r in record.get("rects") or []],
        color=record.get("color") or "",
        base_size=Size.from_dict(record.get("base_size")),
        text=record.get("text") or "",
        remote_id=record.get("remote_id"),
        created_at=int(record.get("created_at") or 0),
        synced=bool(record.get("synced")),
        geometry_version=int(record.get("geometry_version") or 1),
    )


def write_highlights_json(highlights: List[Highlight], output_path: str) -> int:
    """
    Write highlights to a JSON dump

    Returns:
        Number of highlights written
    """
    parent = Path(output_path).parent
    if str(parent):
        ensure_directory_exists(str(parent))
    data = {
        "version": DUMP_FORMAT_VERSION,
        "highlights": [highlight_to_record(h) for h in highlights],
    }
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    logger.info(f"Wrote {len(highlights)} highlights to {output_path}")
    return len(highlights)


def read_highlights_json(input_path: str, owner_key: Optional[str] = None) -> List[Highlight]:
    """
    Read a JSON dump written by :func:`write_highlights_json`.

    A bare list of records is accepted as well. Such lists are usually
    hand-edited or written by other tools, often in a legacy Windows
    encoding, so the encoding is detected rather than assumed to be UTF-8.
    Malformed records are logged and skipped.
    """
    data = json.loads(safe_read_text_file(input_path))
    records = data.get("highlights", []) if isinstance(data, dict) else data

    highlights = []
    for record in records or []:
        try:
            highlights.append(highlight_from_record(record, owner_key))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed highlight record in {input_path}: {e}")
    return highlights
