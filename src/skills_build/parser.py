"""Parse one rule document into a :class:`Rule`.

A rule document is a key-value metadata block followed by a Markdown body::

    ---
    title: Avoid unbounded arrays
    impact: CRITICAL
    impactDescription: prevents 16MB document limit errors
    tags: schema, arrays
    ---

    ## Avoid unbounded arrays

    Explanation paragraphs...

    **Incorrect (array grows forever):**

    ```javascript
    db.posts.updateOne(...)
    ```

    Why it breaks...

    Reference: [Data modeling](https://www.mongodb.com/docs/manual/data-modeling/)

Bold lines and level-3+ headings start labeled examples. Structural
problems (no examples, bad impact level) are left to the validator.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

from skills_build.errors import ParseError
from skills_build.models import DEFAULT_LANGUAGE, Example, ParsedRule, Rule

_HEADING_RE = re.compile(r"^(#{1,6})\s+(.+?)\s*#*\s*$")
_BOLD_LABEL_RE = re.compile(r"^\*\*([^*]+?)\*\*\s*:?\s*$")
_FENCE_RE = re.compile(r"^\s*(`{3,}|~{3,})\s*([\w+#.-]*)")
_LABEL_DESCRIPTION_RE = re.compile(r"^(.*?)\s*\((.+)\)\s*$")
_REFERENCE_LINE_RE = re.compile(r"^\s*(?:\*\*)?(?:references?|see also)\s*:", re.IGNORECASE)
_LINK_RE = re.compile(r"\[[^\]]*\]\(\s*(https?://[^)\s]+)(?:\s+\"[^\"]*\")?\s*\)")
_AUTOLINK_RE = re.compile(r"<(https?://[^>\s]+)>")
_METADATA_LINE_RE = re.compile(r"^([A-Za-z_][\w-]*)\s*:(.*)$")


@dataclass
class _ExampleDraft:
    label: str
    description: str | None = None
    before: list[str] = field(default_factory=list)
    after: list[str] = field(default_factory=list)
    code: str | None = None
    language: str = DEFAULT_LANGUAGE
    closed: bool = False

    def add_text(self, line: str) -> None:
        if self.code is None and not self.closed:
            self.before.append(line)
        else:
            self.after.append(line)

    def build(self) -> Example:
        parts = [self.description or "", _clean_block(self.before)]
        description = "\n\n".join(part for part in parts if part) or None
        return Example(
            label=self.label,
            description=description,
            code=self.code or "",
            language=self.language,
            additional_text=_clean_block(self.after) or None,
        )


def parse_rule_file(path: str | Path, file_ref: str | None = None) -> ParsedRule:
    rule_path = Path(path)
    raw = rule_path.read_text(encoding="utf-8")
    rule = parse_rule(raw, slug=rule_path.stem)
    return ParsedRule(path=rule_path, file_ref=file_ref or rule_path.name, raw=raw, rule=rule)


def parse_rule(text: str, slug: str) -> Rule:
    header, body, body_offset = _split_front_matter(text)
    meta = _load_metadata(header)

    title_heading: str | None = None
    explanation: list[str] = []
    drafts: list[_ExampleDraft] = []
    references: list[str] = []

    fence_marker: str | None = None
    fence_lines: list[str] = []
    fence_language = DEFAULT_LANGUAGE
    fence_start = 0

    for index, line in enumerate(body):
        current = drafts[-1] if drafts else None

        if fence_marker is not None:
            if _closes_fence(line, fence_marker):
                code = "\n".join(fence_lines)
                if current is None:
                    explanation.extend(fence_lines)
                    explanation.append(line)
                elif current.code is None and not current.closed:
                    current.code = code
                    current.language = fence_language
                else:
                    drafts.append(_ExampleDraft(label=current.label, code=code, language=fence_language))
                fence_marker = None
            else:
                fence_lines.append(line)
            continue

        fence = _FENCE_RE.match(line)
        if fence:
            fence_marker = fence.group(1)
            fence_language = fence.group(2) or DEFAULT_LANGUAGE
            fence_lines = []
            fence_start = body_offset + index + 1
            if current is None:
                explanation.append(line)
            continue

        references.extend(_extract_links(line))

        heading = _HEADING_RE.match(line)
        if heading:
            level = len(heading.group(1))
            text_value = heading.group(2).strip()
            if title_heading is None and level <= 2 and not drafts and not _clean_block(explanation):
                title_heading = text_value
                continue
            if level >= 3:
                drafts.append(_new_draft(text_value, body_offset + index + 1))
                continue
            if current is not None:
                current.closed = True
                current.after.append(line)
            else:
                explanation.append(line)
            continue

        if _REFERENCE_LINE_RE.match(line):
            continue

        bold = _BOLD_LABEL_RE.match(line.strip())
        if bold:
            drafts.append(_new_draft(bold.group(1), body_offset + index + 1))
            continue

        if current is None:
            explanation.append(line)
        else:
            current.add_text(line)

    if fence_marker is not None:
        raise ParseError(f"Malformed labeled-example block: unclosed code fence opened at line {fence_start}")

    meta_title = _optional_text(meta.get("title"))
    return Rule(
        slug=slug,
        title=meta_title or title_heading or "",
        impact=_parse_impact(meta.get("impact")),
        impact_description=_optional_text(meta.get("impactDescription")),
        explanation=_clean_block(explanation),
        examples=tuple(draft.build() for draft in drafts),
        references=tuple(dict.fromkeys(references)),
        tags=_parse_tags(meta.get("tags")),
    )


def _split_front_matter(text: str) -> tuple[str, list[str], int]:
    lines = text.lstrip("\ufeff").splitlines()
    if not lines or lines[0].strip() != "---":
        raise ParseError("Missing metadata header: document must start with a '---' front-matter block")

    for index in range(1, len(lines)):
        if lines[index].strip() == "---":
            return "\n".join(lines[1:index]), lines[index + 1 :], index + 1

    raise ParseError("Missing metadata header: front-matter block is not closed with '---'")


def _load_metadata(header: str, first_line: int = 2) -> dict[str, object]:
    """Read ``key: value`` lines; ``- item`` lines under an empty key form a list."""
    meta: dict[str, object] = {}
    current_key: str | None = None

    for offset, line in enumerate(header.splitlines()):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue

        if line[:1].isspace() or stripped.startswith("- "):
            if current_key is None or not stripped.startswith("-"):
                raise ParseError(f"Invalid metadata line {first_line + offset}: {stripped!r}")
            items = meta.get(current_key)
            if not isinstance(items, list):
                if items is not None:
                    raise ParseError(f"Invalid metadata line {first_line + offset}: {stripped!r}")
                items = []
                meta[current_key] = items
            items.append(_unquote(stripped[1:].strip()))
            continue

        entry = _METADATA_LINE_RE.match(line)
        if not entry:
            raise ParseError(f"Invalid metadata line {first_line + offset}: {stripped!r}")
        current_key = entry.group(1)
        meta[current_key] = _metadata_value(entry.group(2).strip())

    return meta


def _metadata_value(value: str) -> object:
    if not value:
        return None
    if value.startswith("[") and value.endswith("]"):
        return [_unquote(item.strip()) for item in value[1:-1].split(",") if item.strip()]
    return _unquote(value)


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    return value


def _parse_impact(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        raise ParseError(f"Unparseable impact value: {value!r}")
    return str(value).strip()


def _parse_tags(value: object) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, list):
        items = [str(item) for item in value]
    else:
        items = [str(value)]
    tags = [item.strip() for item in items if item and item.strip()]
    return tuple(dict.fromkeys(tags))


def _new_draft(raw_label: str, line_number: int) -> _ExampleDraft:
    label = raw_label.strip().rstrip(":").strip()
    if not label:
        raise ParseError(f"Malformed labeled-example block: empty label at line {line_number}")

    described = _LABEL_DESCRIPTION_RE.match(label)
    if described and described.group(1).strip():
        return _ExampleDraft(
            label=described.group(1).strip().rstrip(":").strip(),
            description=described.group(2).strip(),
        )
    return _ExampleDraft(label=label)


def _closes_fence(line: str, marker: str) -> bool:
    stripped = line.strip()
    return stripped.startswith(marker) and not stripped.strip(marker[0])


def _extract_links(line: str) -> list[str]:
    links = [match.group(1) for match in _LINK_RE.finditer(line)]
    links.extend(match.group(1) for match in _AUTOLINK_RE.finditer(line))
    return links


def _optional_text(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _clean_block(lines: list[str]) -> str:
    text = "\n".join(line.rstrip() for line in lines).strip("\n")
    return re.sub(r"\n{3,}", "\n\n", text).strip()
