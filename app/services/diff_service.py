# =====================================================
# FILE: app/services/diff_service.py
# Change logs and comparisons between contract versions
# =====================================================

import difflib
import html
import json
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from app.utils.sanitize import strip_html

TRACKED_FIELDS = {
    "title": "Contract Title",
    "counterparty_name": "Counterparty Name",
    "counterparty_email": "Counterparty Email",
    "start_date": "Start Date",
    "end_date": "End Date",
    "amount": "Contract Value",
}

COMPARED_FIELDS = {**TRACKED_FIELDS, "status": "Status"}

_WORD_SPLIT = re.compile(r"(\s+)")


class DiffService:
    """Stateless helpers used when versions are created and compared"""

    # =====================================================
    # CHANGE LOG
    # =====================================================

    @staticmethod
    def calculate_changes(
        previous: Optional[Dict[str, Any]],
        current: Dict[str, Any],
        user_email: str
    ) -> Dict[str, Any]:
        """
        Build the change log stored on a new version.

        The first version of a contract has no previous state and gets the
        fixed "Initial version created" summary.
        """
        if not previous:
            return {
                "summary": "Initial version created",
                "change_count": 0,
                "changes": [],
                "created_by": user_email,
            }

        field_changes = DiffService._field_changes(previous, current, TRACKED_FIELDS)
        changes: List[Dict[str, Any]] = list(field_changes)

        old_content = _content_of(previous)
        new_content = _content_of(current)
        if old_content != new_content:
            changes.append(DiffService.calculate_content_diff(old_content, new_content))

        return {
            "summary": DiffService.generate_summary(field_changes, changes),
            "change_count": len(changes),
            "changes": changes,
            "created_by": user_email,
        }

    @staticmethod
    def generate_summary(field_changes: List[Dict[str, Any]], all_changes: List[Dict[str, Any]]) -> str:
        if not all_changes:
            return "No changes made"

        if not field_changes and len(all_changes) == 1:
            return "Content updated"

        names = [change["label"].lower() for change in field_changes]

        if len(names) == 1:
            return f"Updated {names[0]}"
        if len(names) == 2:
            return f"Updated {names[0]} and {names[1]}"
        if len(names) > 2:
            remaining = len(names) - 2
            noun = "field" if remaining == 1 else "fields"
            return f"Updated {names[0]}, {names[1]} and {remaining} other {noun}"

        return f"{len(all_changes)} changes made"

    # =====================================================
    # CONTENT DIFF
    # =====================================================

    @staticmethod
    def calculate_content_diff(old_content: str, new_content: str) -> Dict[str, Any]:
        """Character level statistics over the HTML-stripped text"""
        old_text = strip_html(old_content)
        new_text = strip_html(new_content)

        if old_text == new_text:
            return {"change_type": "no_change"}

        additions = 0
        deletions = 0
        matcher = difflib.SequenceMatcher(None, old_text, new_text, autojunk=False)
        for tag, i1, i2, j1, j2 in matcher.get_opcodes():
            if tag in ("insert", "replace"):
                additions += j2 - j1
            if tag in ("delete", "replace"):
                deletions += i2 - i1

        return {
            "change_type": "content_modified",
            "diff_stats": {
                "additions": additions,
                "deletions": deletions,
                "modifications": min(additions, deletions),
            },
        }

    @staticmethod
    def generate_html_diff(old_content: str, new_content: str) -> str:
        """Word level diff rendered as escaped spans"""
        old_words = _WORD_SPLIT.split(old_content or "")
        new_words = _WORD_SPLIT.split(new_content or "")

        parts = ['<div class="diff-content">']
        matcher = difflib.SequenceMatcher(None, old_words, new_words, autojunk=False)
        for tag, i1, i2, j1, j2 in matcher.get_opcodes():
            if tag == "equal":
                parts.append(_span("".join(old_words[i1:i2])))
                continue
            if tag in ("delete", "replace"):
                parts.append(_span("".join(old_words[i1:i2]), "diff-removed"))
            if tag in ("insert", "replace"):
                parts.append(_span("".join(new_words[j1:j2]), "diff-added"))
        parts.append("</div>")
        return "".join(parts)

    @staticmethod
    def calculate_hunks(old_content: str, new_content: str, context: int = 3) -> List[Dict[str, Any]]:
        """Unified-diff style hunks over the text lines"""
        old_lines = strip_html(old_content).splitlines()
        new_lines = strip_html(new_content).splitlines()

        hunks = []
        matcher = difflib.SequenceMatcher(None, old_lines, new_lines, autojunk=False)
        for group in matcher.get_grouped_opcodes(context):
            first, last = group[0], group[-1]
            lines = []
            for tag, i1, i2, j1, j2 in group:
                if tag == "equal":
                    lines.extend(f" {line}" for line in old_lines[i1:i2])
                    continue
                if tag in ("delete", "replace"):
                    lines.extend(f"-{line}" for line in old_lines[i1:i2])
                if tag in ("insert", "replace"):
                    lines.extend(f"+{line}" for line in new_lines[j1:j2])
            hunks.append({
                "old_start": first[1] + 1,
                "old_lines": last[2] - first[1],
                "new_start": first[3] + 1,
                "new_lines": last[4] - first[3],
                "lines": lines,
            })
        return hunks

    # =====================================================
    # VERSION COMPARISON
    # =====================================================

    @staticmethod
    def compare_versions(from_version: Dict[str, Any], to_version: Dict[str, Any]) -> Dict[str, Any]:
        from_content = _content_of(from_version)
        to_content = _content_of(to_version)

        content_diff = DiffService.calculate_content_diff(from_content, to_content)
        content_diff["html_diff"] = DiffService.generate_html_diff(from_content, to_content)

        return {
            "field_changes": DiffService._field_changes(from_version, to_version, COMPARED_FIELDS),
            "content_diff": content_diff,
            "hunks": DiffService.calculate_hunks(from_content, to_content),
        }

    @staticmethod
    def _field_changes(old: Dict[str, Any], new: Dict[str, Any], fields: Dict[str, str]) -> List[Dict[str, Any]]:
        changes = []
        for field, label in fields.items():
            old_value = old.get(field)
            new_value = new.get(field)
            if format_value(old_value) == format_value(new_value):
                continue

            if old_value is None:
                change_type = "added"
            elif new_value is None:
                change_type = "removed"
            else:
                change_type = "modified"

            changes.append({
                "field": field,
                "label": label,
                "old_value": format_value(old_value),
                "new_value": format_value(new_value),
                "change_type": change_type,
            })
        return changes


def format_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True, default=str)
    return str(value)


def _content_of(snapshot: Dict[str, Any]) -> str:
    return snapshot.get("annexure_data") or snapshot.get("content") or ""


def _span(text: str, css_class: Optional[str] = None) -> str:
    escaped = html.escape(text, quote=True)
    if css_class:
        return f'<span class="{css_class}">{escaped}</span>'
    return f"<span>{escaped}</span>"
