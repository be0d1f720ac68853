"""
SQL safety auditor.

Every statement produced by the language model passes through here before it
can reach the database. The audit is textual and allowlist based: it does not
parse SQL, it refuses anything it cannot positively recognise as a single,
row-capped, role-scoped SELECT over the catalogue tables.

The audit is a pure function of (sql, actor, row limit). All rules run and
their issues accumulate so the caller can show every violation at once.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Protocol, Set, Tuple

from app.ai_feature.actor import (
    ActorContext,
    AdminActor,
    StudentActor,
    TeacherActor,
)
from app.ai_feature.catalogue import ALLOWED_TABLES

SAFE = "SAFE"
NOT_SAFE = "NOT_SAFE"

DEFAULT_ROW_LIMIT = 200

FORBIDDEN_VERBS = (
    "update",
    "delete",
    "insert",
    "merge",
    "drop",
    "alter",
    "create",
    "truncate",
    "exec",
    "execute",
)

_FORBIDDEN_RE = re.compile(
    r"\b(?:" + "|".join(FORBIDDEN_VERBS) + r")\b", re.IGNORECASE
)
_INTO_RE = re.compile(r"\binto\b", re.IGNORECASE)
_COMMENT_RE = re.compile(r"--|/\*")
_SHAPE_RE = re.compile(r"^(?:select|with)\b", re.IGNORECASE)
_TOP_RE = re.compile(r"\btop\s*(?:\(\s*\d+\s*\)|\d+)", re.IGNORECASE)

# One left-to-right pass over quoted tokens: [identifier] (]] escapes ]),
# "identifier" ("" escapes "), 'literal' or N'literal' ('' escapes '). A lone
# opening character is an unterminated token.
QUOTED_RE = re.compile(
    r"\[(?:[^\]]|\]\])*\]"
    r'|"(?:[^"]|"")*"'
    r"|(?:(?<!\w)N)?'(?:[^']|'')*'"
    r"|[\['\"]",
    re.IGNORECASE,
)
_PLAIN_IDENT_RE = re.compile(r"^[\[\"]\w+[\]\"]$")

# -----------------------------------------------------------------------------
# Table reference scanning
# -----------------------------------------------------------------------------

_SOURCE_KEYWORD_RE = re.compile(r"\b(?:from|join|apply)\b", re.IGNORECASE)

_IDENT_PART = r'(?:\[[^\]]*\]|"[^"]*"|[A-Za-z_#@][\w#@$]*)'
_IDENT_PART_RE = re.compile(_IDENT_PART)
_TABLE_REF_RE = re.compile(
    r"\s*(" + _IDENT_PART + r"(?:\s*\.\s*" + _IDENT_PART + r")*)"
)

# Words that end a table reference instead of being its alias
_CLAUSE_WORDS = (
    "where",
    "on",
    "join",
    "inner",
    "left",
    "right",
    "full",
    "cross",
    "outer",
    "group",
    "order",
    "having",
    "union",
    "except",
    "intersect",
    "with",
    "apply",
    "pivot",
    "unpivot",
    "for",
    "option",
    "select",
    "from",
    "as",
)
_ALIAS_RE = re.compile(
    r"\s+(?:as\s+)?(?!(?:" + "|".join(_CLAUSE_WORDS) + r")\b)"
    r'(?:\[[^\]]*\]|"[^"]*"|[A-Za-z_]\w*)',
    re.IGNORECASE,
)
# Table hints "WITH (NOLOCK)", "(NOLOCK)" or the argument list of a function
_PAREN_SUFFIX_RE = re.compile(r"\s*(?:with\s*)?\([^()]*\)", re.IGNORECASE)

_CTE_RE = re.compile(
    r"(?:\bwith|,)\s*(\[[^\]]*\]|[A-Za-z_]\w*)\s*(?:\([^()]*\))?\s*as\s*\(",
    re.IGNORECASE,
)

_TEACHER_SELF_FILTER_RE = re.compile(
    r"\bteacherid\]?\s*=\s*@teacherid\b"
    r"|@teacherid\s*=\s*(?:[\w\[\]]+\.)?\[?teacherid\b",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class AuditVerdict:
    approved: bool
    decision: str
    normalized_sql: Optional[str]
    parameters: Dict[str, Any] = field(default_factory=dict)
    issues: Tuple[str, ...] = ()
    user_message: str = ""


class SqlValidator(Protocol):
    """Anything that can approve or deny a candidate statement for an actor."""

    def validate(self, sql: Optional[str], actor: ActorContext) -> AuditVerdict:
        ...


def is_literal(token: str) -> bool:
    return len(token) > 1 and token.endswith("'")


def mask_quoted(sql: str) -> str:
    """
    Blank out string literals and quoted identifiers that are not plain words.

    Literals become '' and unusual identifiers become [], so no quoted text
    can pose as a table name, a keyword or a placeholder. [Students] and
    "Students" are kept as written.
    """

    def mask(match) -> str:
        token = match.group(0)
        if is_literal(token):
            return "''"
        if len(token) == 1 or _PLAIN_IDENT_RE.match(token):
            return token
        return "[]"

    return QUOTED_RE.sub(mask, sql)


def has_unterminated_quote(sql: str) -> bool:
    return any(len(match.group(0)) == 1 for match in QUOTED_RE.finditer(sql))


def _unquote(part: str) -> str:
    return part.strip().strip("[]\"").strip()


def _table_name(reference: str) -> str:
    # Last part of a (possibly schema-qualified) name
    parts = _IDENT_PART_RE.findall(reference)
    if not parts:
        return ""
    return _unquote(parts[-1]).lower()


def extract_table_references(sql: str) -> Tuple[List[str], int]:
    """
    Return (table names, unreadable count) for every FROM / JOIN / APPLY
    source in the statement.

    Derived tables "(SELECT ...)" are skipped: their own FROM is found by the
    same scan. Each entry of a comma separated FROM list is returned.
    A source keyword followed by something that is not an identifier counts
    as unreadable.
    """
    text = mask_quoted(sql)
    tables: List[str] = []
    unreadable = 0

    for match in _SOURCE_KEYWORD_RE.finditer(text):
        pos = match.end()
        while True:
            if text[pos:].lstrip().startswith("("):
                break

            ref = _TABLE_REF_RE.match(text, pos)
            name = _table_name(ref.group(1)) if ref else ""
            if not name:
                unreadable += 1
                break
            tables.append(name)
            pos = ref.end()

            for pattern in (_PAREN_SUFFIX_RE, _ALIAS_RE, _PAREN_SUFFIX_RE):
                suffix = pattern.match(text, pos)
                if suffix:
                    pos = suffix.end()

            rest = text[pos:]
            if not rest.lstrip().startswith(","):
                break
            pos += len(rest) - len(rest.lstrip()) + 1

    return tables, unreadable


def extract_cte_names(sql: str) -> Set[str]:
    text = mask_quoted(sql).lstrip()
    if not re.match(r"with\b", text, re.IGNORECASE):
        return set()
    return {_unquote(name).lower() for name in _CTE_RE.findall(text)}


def _normalize(sql: str, issues: List[str]) -> str:
    trimmed = sql.strip()
    if ";" in trimmed:
        if trimmed.count(";") == 1 and trimmed.endswith(";"):
            trimmed = trimmed[:-1].rstrip()
        else:
            issues.append("Multiple statements are not allowed (unexpected ';').")
    return trimmed


def _deny(sql: str, issues: List[str]) -> AuditVerdict:
    return AuditVerdict(
        approved=False,
        decision=NOT_SAFE,
        normalized_sql=sql,
        parameters={},
        issues=tuple(issues),
        user_message="\n".join(f"- {issue}" for issue in issues),
    )


def _check_scoping(
    actor: ActorContext,
    scan_text: str,
    tables: List[str],
    issues: List[str],
) -> Dict[str, Any]:
    parameters: Dict[str, Any] = {}

    if isinstance(actor, StudentActor):
        if actor.student_id is None:
            issues.append("Could not resolve StudentId for this user.")
        elif not re.search(r"@studentid\b", scan_text, re.IGNORECASE):
            issues.append("Student queries must include @studentId filtering.")
        else:
            parameters["@studentId"] = actor.student_id

    elif isinstance(actor, TeacherActor):
        if actor.teacher_id is None:
            issues.append("Could not resolve TeacherId for this user.")
        elif not re.search(r"@teacherid\b", scan_text, re.IGNORECASE):
            issues.append(
                "Teacher queries must include @teacherId filtering "
                "via CourseAssignments.TeacherId."
            )
        else:
            parameters["@teacherId"] = actor.teacher_id
            if "teachers" in tables and not _TEACHER_SELF_FILTER_RE.search(scan_text):
                issues.append(
                    "When querying the Teachers table, teachers must filter by "
                    "TeacherId = @teacherId (own record only)."
                )

    elif not isinstance(actor, AdminActor):
        if actor.user_id is None:
            issues.append("Actor is not authenticated.")
        else:
            issues.append("Actor has no role permitted to query.")

    return parameters


def evaluate(
    sql: Optional[str],
    actor: ActorContext,
    row_limit: int = DEFAULT_ROW_LIMIT,
    allowed_tables: FrozenSet[str] = ALLOWED_TABLES,
) -> AuditVerdict:
    """
    Audit one candidate statement for one actor.

    Never raises. Anything that is not clearly a single capped SELECT over
    allowlisted tables with the actor's mandatory filter is denied.
    """
    issues: List[str] = []
    normalized = _normalize(sql if isinstance(sql, str) else "", issues)

    if not normalized:
        issues.append("Empty SQL.")
        return _deny(normalized, issues)

    if _FORBIDDEN_RE.search(normalized):
        issues.append(
            "Non-read-only SQL is not allowed (UPDATE/DELETE/INSERT/etc). Only SELECT."
        )

    if _INTO_RE.search(normalized):
        issues.append("SELECT ... INTO is not allowed.")

    if _COMMENT_RE.search(normalized):
        issues.append("SQL comments are not allowed.")

    if not _SHAPE_RE.match(normalized):
        issues.append("SQL must start with SELECT (or WITH ... SELECT).")

    scan_text = mask_quoted(normalized)
    if has_unterminated_quote(normalized):
        issues.append("Unterminated quote or bracket.")

    if not _TOP_RE.search(scan_text):
        issues.append(f"SQL must include TOP ({row_limit}).")

    tables, unreadable = extract_table_references(normalized)
    cte_names = extract_cte_names(normalized)
    seen: Set[str] = set()
    for table in tables:
        if table in cte_names or table in seen:
            continue
        seen.add(table)
        if table not in allowed_tables:
            issues.append(f"Table '{table}' is not allowed.")
    if unreadable:
        issues.append("Could not read a table name after FROM/JOIN.")

    parameters = _check_scoping(actor, scan_text, tables, issues)

    if issues:
        return _deny(normalized, issues)

    return AuditVerdict(
        approved=True,
        decision=SAFE,
        normalized_sql=normalized,
        parameters=parameters,
        issues=(),
        user_message="Approved.",
    )


class TextualSqlAuditor:
    """Default SqlValidator backed by evaluate()."""

    def __init__(
        self,
        row_limit: int = DEFAULT_ROW_LIMIT,
        allowed_tables: FrozenSet[str] = ALLOWED_TABLES,
    ):
        self.row_limit = row_limit
        self.allowed_tables = allowed_tables

    def validate(self, sql: Optional[str], actor: ActorContext) -> AuditVerdict:
        return evaluate(sql, actor, self.row_limit, self.allowed_tables)
