from __future__ import annotations

import re

_DECORATIVE_SUFFIX = re.compile(r"\s+language\s*$", re.IGNORECASE)

# Display names used by the playground, keyed to the Piston language identifiers.
LANGUAGE_TABLE: dict[str, str] = {
    "Python": "python",
    "JavaScript": "javascript",
    "Java": "java",
    "C": "c",
    "C++": "cpp",
    "Go": "go",
    "PHP": "php",
    "Ruby": "ruby",
    "Rust": "rust",
    "Swift": "swift",
    "Kotlin": "kotlin",
    "TypeScript": "typescript",
    "Scala": "scala",
    "Perl": "perl",
    "Lua": "lua",
    "Haskell": "haskell",
    "Clojure": "clojure",
    "Erlang": "erlang",
    "Elixir": "elixir",
    "Dart": "dart",
    "R": "r",
    "Bash": "bash",
    "PowerShell": "powershell",
    "C#": "csharp",
    "F#": "fsharp",
    "VB.NET": "vbnet",
    "Objective-C": "objective-c",
    "Assembly": "assembly",
    "COBOL": "cobol",
    "Fortran": "fortran",
    "Pascal": "pascal",
    "Prolog": "prolog",
    "Lisp": "lisp",
    "Scheme": "scheme",
    "OCaml": "ocaml",
    "Julia": "julia",
    "Nim": "nim",
    "Crystal": "crystal",
    "Zig": "zig",
    "V": "v",
    "D": "d",
    "Elm": "elm",
    "PureScript": "purescript",
    "CoffeeScript": "coffeescript",
    "Racket": "racket",
    "Raku": "raku",
}

_BY_FOLDED_NAME = {name.casefold(): lang_id for name, lang_id in LANGUAGE_TABLE.items()}
_DISPLAY_BY_ID = {lang_id: name for name, lang_id in LANGUAGE_TABLE.items()}


def strip_decorations(label: str) -> str:
    """Remove decorative suffixes such as `" Language"` and surrounding whitespace.

    Example:
        ```python
        strip_decorations("C Language ")  # "C"
        ```
    """
    return _DECORATIVE_SUFFIX.sub("", label.strip()).strip()


def map_language(label: str) -> str:
    """Translate a display label into the engine's canonical language id.

    Unknown labels fall back to their lower-cased form so engines that add
    languages keep working. Only a blank label maps to `""`.

    Example:
        ```python
        map_language("C++ Language")  # "cpp"
        map_language("brainfuck")     # "brainfuck"
        ```
    """
    if not label or not label.strip():
        return ""
    cleaned = strip_decorations(label)
    mapped = _BY_FOLDED_NAME.get(cleaned.casefold())
    if mapped is not None:
        return mapped
    return (cleaned or label.strip()).lower()


def display_name_for(language_id: str) -> str | None:
    """Return the display name for a canonical id, if the table knows it.

    Example:
        ```python
        display_name_for("csharp")  # "C#"
        ```
    """
    return _DISPLAY_BY_ID.get(language_id)


def supported_display_names() -> list[str]:
    """List the display names of the static table, sorted case-insensitively.

    Example:
        ```python
        names = supported_display_names()
        ```
    """
    return sorted(LANGUAGE_TABLE, key=str.casefold)
