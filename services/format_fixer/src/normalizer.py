"""
Lenient normalizer for quasi-JSON notification records.

The publisher writes records as flat ``key: value`` lines where keys are
unquoted, values are quoted inconsistently and numbers sometimes arrive as
strings. ``normalize`` repairs that shape with a fixed sequence of passes over
a token stream:

    1. quote_keys       bare ``key: `` -> ``"key": ``
    2. quote_values     single-token values after ``": "`` -> ``"value"``
    3. unquote_numbers  ``"1.0",`` -> ``1.0,``
    4. frame_object     bare member list -> ``{ ... }``

A colon only separates key and value when it is followed by whitespace (or the
end of the text) or directly follows a quoted string. Any other colon stays
inside its bare word, so URLs, ARNs and clock times survive as single values.
Quoted strings are atomic: no pass rewrites text inside them.

The passes never raise. Input that does not follow the flat ``key: value``
shape may come out as invalid JSON; that is reported by the decoder.
"""
import re
from dataclasses import dataclass
from typing import List, Optional

WS = "ws"
STRING = "string"
PUNCT = "punct"
COLON = "colon"
WORD = "word"

_PUNCT = "{}[],"
_QUOTES = "'\""

KEY_RE = re.compile(r"[A-Za-z0-9_]+")
VALUE_RE = re.compile(r"[A-Za-z0-9_/.\-:?&=+]+")
NUMBER_RE = re.compile(r"[0-9.]+")


@dataclass(frozen=True)
class Token:
    kind: str
    text: str

    @property
    def inner(self) -> str:
        """Contents without the surrounding quotes for strings, raw text otherwise."""
        if self.kind == STRING:
            return self.text[1:-1]
        return self.text


def _quoted(value: str) -> Token:
    return Token(STRING, f'"{value}"')


def _scan_string(text: str, start: int) -> Optional[int]:
    # Index just past the closing quote, None when unterminated
    quote = text[start]
    i = start + 1
    while i < len(text):
        if text[i] == "\\":
            i += 2
            continue
        if text[i] == quote:
            return i + 1
        i += 1
    return None


def _ends_word(text: str, i: int) -> bool:
    ch = text[i]
    if ch.isspace() or ch in _PUNCT:
        return True
    return ch == ":" and (i + 1 == len(text) or text[i + 1].isspace())


def tokenize(text: str) -> List[Token]:
    tokens: List[Token] = []
    i, n = 0, len(text)
    while i < n:
        ch = text[i]
        if ch.isspace():
            j = i
            while j < n and text[j].isspace():
                j += 1
            tokens.append(Token(WS, text[i:j]))
        elif ch in _PUNCT:
            j = i + 1
            tokens.append(Token(PUNCT, ch))
        elif ch in _QUOTES:
            end = _scan_string(text, i)
            if end is None:
                # Unterminated quote: pass the rest through untouched
                j = n
                tokens.append(Token(WORD, text[i:]))
            else:
                j = end
                tokens.append(Token(STRING, text[i:j]))
        elif ch == ":" and (_ends_word(text, i) or (tokens and tokens[-1].kind == STRING)):
            j = i + 1
            tokens.append(Token(COLON, ch))
        else:
            j = i + 1
            while j < n and not _ends_word(text, j):
                j += 1
            tokens.append(Token(WORD, text[i:j]))
        i = j
    return tokens


def render(tokens: List[Token]) -> str:
    return "".join(t.text for t in tokens)


def quote_keys(tokens: List[Token]) -> List[Token]:
    """``key: ``, ``'key': `` and ``"key": `` all become ``"key": ``.

    Only a whole identifier token is a key, so ``a.b: x`` is left alone.
    """
    out = list(tokens)
    for i in range(len(out) - 2):
        key, colon, ws = out[i], out[i + 1], out[i + 2]
        if colon.kind != COLON or ws.kind != WS:
            continue
        if key.kind in (WORD, STRING) and KEY_RE.fullmatch(key.inner):
            out[i] = _quoted(key.inner)
            # One whitespace character after the colon becomes a single space
            out[i + 2] = Token(WS, " " + ws.text[1:])
    return out


def _value_span(tokens: List[Token], start: int) -> List[int]:
    # A value runs until the next punctuation or line break
    span = []
    for j in range(start, len(tokens)):
        tok = tokens[j]
        if tok.kind == PUNCT or (tok.kind == WS and "\n" in tok.text):
            break
        span.append(j)
    while span and tokens[span[-1]].kind == WS:
        span.pop()
    return span


def quote_values(tokens: List[Token]) -> List[Token]:
    """Wrap simple values (identifiers, URLs, ARNs, timestamps) in double quotes.

    The value must be a single token made of ``[A-Za-z0-9_/.-:?&=+]``, bare or
    wrapped in either quote style. Free text spanning several tokens keeps its
    original form.
    """
    out = list(tokens)
    for i in range(len(out) - 2):
        if out[i].kind != COLON or out[i + 1] != Token(WS, " "):
            continue
        span = _value_span(out, i + 2)
        if len(span) != 1:
            continue
        value = out[span[0]]
        if value.kind in (WORD, STRING) and VALUE_RE.fullmatch(value.inner):
            out[span[0]] = _quoted(value.inner)
    return out


def unquote_numbers(tokens: List[Token]) -> List[Token]:
    """Strip the quotes from numeric values directly followed by a comma.

    The last member of an object has no trailing comma and keeps its quotes.
    """
    out = list(tokens)
    for i in range(len(out) - 3):
        colon, ws, value, comma = out[i:i + 4]
        if (
            colon.kind == COLON
            and ws == Token(WS, " ")
            and value.kind == STRING
            and NUMBER_RE.fullmatch(value.inner)
            and comma == Token(PUNCT, ",")
        ):
            out[i + 2] = Token(WORD, value.inner)
    return out


def frame_object(tokens: List[Token]) -> List[Token]:
    """Wrap a bare member list (``"a": 1, "b": 2``) in braces."""
    first = next((t for t in tokens if t.kind != WS), None)
    if first is None or first.text in ("{", "["):
        return list(tokens)
    return [Token(PUNCT, "{")] + list(tokens) + [Token(PUNCT, "}")]


PASSES = (quote_keys, quote_values, unquote_numbers, frame_object)


def normalize(raw_text: str) -> str:
    tokens = tokenize(raw_text)
    for apply_pass in PASSES:
        tokens = apply_pass(tokens)
    return render(tokens)
