"""
Style sheet splitting and rescoping for slides merged into the talk page.

This isn't a real CSS parser. extract_rules() only finds the top-level
rules and @-rules of a style sheet, so that the rules the slide author wrote
can be prefixed with a scope selector ("#slides") and stop applying to the
rest of the page. Rules inside @media or @supports are kept as one opaque
block and are NOT rescoped; slide authors should use a media attribute on
the STYLE element instead.
"""

import re
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from talk_sync.urls import resolve

_COMMENT = re.compile(r'/\*.*?(?:\*/|\Z)', re.S)

# url("..."), url('...') and url(...)
_URL_REF = re.compile(r'''\burl\(\s*(?:"([^"]*)"|'([^']*)'|([^'"\s)][^\s)]*))''')


def strip_comments(text: str) -> str:
    """Remove /* ... */ comments (an unterminated one runs to the end)."""
    return _COMMENT.sub('', text)


def _skip_string(text: str, i: int) -> int:
    """Return the index just past the string literal starting at text[i]."""
    quote = text[i]
    i += 1
    while i < len(text):
        c = text[i]
        if c == '\\':
            i += 2
            continue
        if c == quote or c == '\n':
            return i + 1
        i += 1
    return i


def _match_block(text: str, i: int) -> Optional[int]:
    """Given text[i] == "{", return the index just past its matching "}"."""
    depth = 0
    while i < len(text):
        c = text[i]
        if c in '"\'':
            i = _skip_string(text, i)
            continue
        if c == '{':
            depth += 1
        elif c == '}':
            depth -= 1
            if depth == 0:
                return i + 1
        i += 1
    return None


def _scan_at_rule(text: str, i: int) -> Optional[int]:
    """End of the @-rule at text[i]: after a top-level ";" or a balanced block."""
    parens = 0
    while i < len(text):
        c = text[i]
        if c in '"\'':
            i = _skip_string(text, i)
            continue
        if c == '(':
            parens += 1
        elif c == ')':
            parens = max(parens - 1, 0)
        elif c == ';' and parens == 0:
            return i + 1
        elif c == '{':
            return _match_block(text, i)
        i += 1
    return None


def _scan_rule(text: str, i: int) -> tuple[Optional[int], int]:
    """Scan a plain rule starting at text[i].

    Returns (end, resume): end is None when no rule was found, in which case
    scanning resumes at `resume` (an "@" that interrupted the selector, or
    the end of the text).
    """
    while i < len(text):
        c = text[i]
        if c in '"\'':
            i = _skip_string(text, i)
            continue
        if c == '@':
            return None, i
        if c == '{':
            end = _match_block(text, i)
            return end, (end if end is not None else len(text))
        i += 1
    return None, len(text)


def extract_rules(style_text: str) -> list[str]:
    """Split a style sheet into its top-level rules and @-rules.

    Each returned token is either an @-rule ("@import ...;" or "@media ...
    {...}" with its whole nested block) or a plain rule ("selectors {...}").
    Any other top-level text is dropped, as is an unterminated last block.
    """
    text = strip_comments(style_text)
    rules = []
    i = 0
    while i < len(text):
        c = text[i]
        if c.isspace() or c in ';}':
            i += 1
            continue
        if c == '{':
            # A block without a selector
            end = _match_block(text, i)
            i = end if end is not None else len(text)
            continue
        if c == '@':
            end = _scan_at_rule(text, i)
            if end is None:
                break
            rules.append(text[i:end].strip())
            i = end
        else:
            end, resume = _scan_rule(text, i)
            if end is not None:
                rules.append(text[i:end].strip())
            i = resume
    return rules


def make_css_absolute(style: str, base_url: str) -> str:
    """Resolve every URL in url(...) against base_url."""
    def repl(m):
        group = next(g for g in (1, 2, 3) if m.group(g) is not None)
        start, end = m.start(group) - m.start(), m.end(group) - m.start()
        whole = m.group(0)
        return whole[:start] + resolve(m.group(group), base_url) + whole[end:]

    return _URL_REF.sub(repl, style)


def split_selectors(selector_text: str) -> list[str]:
    """Split a selector list on commas that are not inside (), [] or strings."""
    parts = []
    depth = 0
    start = 0
    i = 0
    while i < len(selector_text):
        c = selector_text[i]
        if c in '"\'':
            i = _skip_string(selector_text, i)
            continue
        if c in '([':
            depth += 1
        elif c in ')]':
            depth = max(depth - 1, 0)
        elif c == ',' and depth == 0:
            parts.append(selector_text[start:i].strip())
            start = i + 1
        i += 1
    parts.append(selector_text[start:].strip())
    return [p for p in parts if p]


@dataclass(frozen=True)
class ScopedRule:
    """A rule that has already been rescoped under `scope`."""
    source: str
    text: str
    scope: str

    def __str__(self):
        return self.text


def scope_rule(rule: Union[str, ScopedRule], scope_selector: str,
               base_url: str) -> ScopedRule:
    """Prefix every selector of a plain rule with scope_selector.

    @-rules only get their url() references resolved. Passing in a rule
    that was already scoped under the same selector returns it unchanged.
    """
    if isinstance(rule, ScopedRule):
        if rule.scope == scope_selector:
            return rule
        rule = rule.source

    if rule.startswith('@') or '{' not in rule:
        return ScopedRule(rule, make_css_absolute(rule, base_url), scope_selector)

    brace = rule.index('{')
    selectors = [f"{scope_selector} {s}" for s in split_selectors(rule[:brace])]
    block = make_css_absolute(rule[brace:], base_url)
    return ScopedRule(rule, ", ".join(selectors) + " " + block, scope_selector)


def scope_rules(rules: Iterable[Union[str, ScopedRule]], scope_selector: str,
                base_url: str) -> str:
    """Rescope a sequence of rules and join them into one style sheet."""
    return "\n".join(str(scope_rule(r, scope_selector, base_url)) for r in rules)


def scope_style_sheet(style_text: str, scope_selector: str, base_url: str) -> str:
    """extract_rules() followed by scope_rules()."""
    return scope_rules(extract_rules(style_text), scope_selector, base_url)
