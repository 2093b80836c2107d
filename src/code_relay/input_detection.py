from __future__ import annotations

import re

from .languages import map_language

# Lower-case substrings that mark a program that hit end of input on stdin.
EOF_MARKERS: tuple[str, ...] = (
    "eof",
    "end of file",
    "unexpected eof",
    "eoferror",
)

PROMPT_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"(How\s+many[^?]*\?)", re.IGNORECASE),
    re.compile(r"(Enter\s+[^:\n]+:)", re.IGNORECASE),
    re.compile(r"(Number\s+\d+:)", re.IGNORECASE),
    re.compile(r"([^\n?]*\w[^\n?]*\?)"),
)

# Source fragments that read from stdin, keyed by canonical language id.
STDIN_READERS: dict[str, tuple[str, ...]] = {
    "python": ("input(", "raw_input(", "sys.stdin"),
    "c": ("scanf(", "gets(", "fgets(", "getchar(", "fgetc("),
    "cpp": ("cin >>", "cin>>", "getline(", "cin.get(", "cin.read(", "scanf("),
    "java": ("Scanner", "System.in", "BufferedReader", "nextLine(", "nextInt("),
    "javascript": ("readline", "prompt(", "process.stdin"),
    "typescript": ("readline", "process.stdin"),
    "go": ("fmt.Scan", "bufio.NewReader", "bufio.NewScanner", "os.Stdin"),
    "php": ("fgets(", "readline(", "fscanf(", "STDIN"),
    "ruby": ("gets", "STDIN", "ARGF"),
    "rust": ("stdin()", "read_line("),
    "csharp": ("Console.ReadLine", "Console.Read("),
    "kotlin": ("readLine(", "readln(", "Scanner"),
    "bash": ("read ",),
}


def is_end_of_input(stderr: str, markers: tuple[str, ...] = EOF_MARKERS) -> bool:
    """Decide whether stderr means "program is waiting for stdin" rather than a crash.

    Matching is a case-insensitive substring test against an explicit allow-list,
    so the heuristic can be extended by passing extra markers.

    Example:
        ```python
        is_end_of_input("EOFError: EOF when reading a line")  # True
        is_end_of_input("ZeroDivisionError: division by zero")  # False
        ```
    """
    if not stderr or not stderr.strip():
        return False
    lowered = stderr.lower()
    return any(marker in lowered for marker in markers)


def recover_prompt(text: str) -> str:
    """Pull the first prompt-looking phrase out of engine text.

    Used when a program hit end of input before flushing stdout, which leaves
    the prompt buried in stderr (for example inside a traceback line).

    Example:
        ```python
        recover_prompt("Enter your name: Traceback ...")  # "Enter your name:"
        ```
    """
    if not text:
        return ""
    for pattern in PROMPT_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1).strip()
    return ""


def reads_stdin(source_code: str, language_label: str) -> bool:
    """Statically guess whether a program reads standard input.

    Example:
        ```python
        reads_stdin("name = input('Name: ')", "Python")  # True
        ```
    """
    readers = STDIN_READERS.get(map_language(language_label), ())
    return any(fragment in source_code for fragment in readers)
