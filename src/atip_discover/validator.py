"""Structural validation of ATIP manifests.

A manifest is the JSON document a tool prints when run with ``--agent``.
Validation is independent of how the document was obtained: the prober uses
it on subprocess output, shim loading uses it on pre-authored files, and
``atip-discover validate`` runs it over arbitrary files.

Rules enforced:

1. The document is a JSON object.
2. ``atip``, ``name``, ``version`` and ``description`` are present and
   non-empty. ``atip`` is either a version string or an object carrying a
   string ``version``.
3. ``commands``, when present, maps command names to command objects.
   Every command carries its own non-empty ``description``; nothing is
   inherited from the parent. ``effects`` must be an object whose boolean
   flags are booleans; ``arguments`` and ``options`` must be lists. Nested
   ``commands`` are checked with the same rules at any depth.

All problems are collected rather than stopping at the first one, and the
input document is never modified.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

REQUIRED_FIELDS: tuple[str, ...] = ("atip", "name", "version", "description")

# Effect flags that must be booleans when present.
BOOLEAN_EFFECTS: tuple[str, ...] = (
    "destructive",
    "reversible",
    "idempotent",
    "network",
    "interactive",
)


@dataclass(frozen=True)
class ValidationIssue:
    """One validation problem.

    Attributes:
        path: Location of the problem as a sequence of keys from the root,
            e.g. ``("commands", "repo", "commands", "delete", "description")``.
        message: Human-readable description.
    """

    path: tuple[str, ...]
    message: str

    @property
    def dotted_path(self) -> str:
        return ".".join(self.path)

    def __str__(self) -> str:
        return f"{self.dotted_path or '<root>'}: {self.message}"


@dataclass
class ValidationResult:
    """Outcome of validating one manifest."""

    valid: bool
    errors: list[ValidationIssue] = field(default_factory=list)

    def summary(self) -> str:
        """Join all issues into a single ``path: message; ...`` string."""
        return "; ".join(str(e) for e in self.errors)


def _is_blank(value: Any) -> bool:
    return value is None or value == "" or value == {} or value == []


def _check_atip(value: Any, errors: list[ValidationIssue]) -> None:
    if isinstance(value, str):
        return
    if isinstance(value, dict):
        version = value.get("version")
        if version is None:
            errors.append(ValidationIssue(("atip", "version"), "Required property missing"))
        elif not isinstance(version, str):
            errors.append(ValidationIssue(("atip", "version"), "Must be a string"))
        return
    errors.append(ValidationIssue(("atip",), "Must be a string or an object"))


def _check_effects(effects: Any, path: tuple[str, ...], errors: list[ValidationIssue]) -> None:
    if not isinstance(effects, dict):
        errors.append(ValidationIssue(path, "Must be an object"))
        return
    for flag in BOOLEAN_EFFECTS:
        if flag in effects and not isinstance(effects[flag], bool):
            errors.append(ValidationIssue((*path, flag), "Must be a boolean"))


def _check_commands(
    commands: Any, path: tuple[str, ...], errors: list[ValidationIssue]
) -> None:
    if not isinstance(commands, dict):
        errors.append(ValidationIssue(path, "Must be an object"))
        return

    for name, command in commands.items():
        cmd_path = (*path, str(name))
        if not isinstance(command, dict):
            errors.append(ValidationIssue(cmd_path, "Must be an object"))
            continue

        description = command.get("description")
        if _is_blank(description):
            errors.append(
                ValidationIssue((*cmd_path, "description"), "Required property missing")
            )
        elif not isinstance(description, str):
            errors.append(ValidationIssue((*cmd_path, "description"), "Must be a string"))

        if "effects" in command:
            _check_effects(command["effects"], (*cmd_path, "effects"), errors)
        for list_key in ("arguments", "options"):
            if list_key in command and not isinstance(command[list_key], list):
                errors.append(ValidationIssue((*cmd_path, list_key), "Must be an array"))
        if "commands" in command:
            _check_commands(command["commands"], (*cmd_path, "commands"), errors)


def validate_metadata(document: Any) -> ValidationResult:
    """Validate a parsed manifest.

    Args:
        document: The parsed JSON value.

    Returns:
        ``ValidationResult`` with ``valid=True`` and no errors if the
        manifest conforms, otherwise every issue found.
    """
    errors: list[ValidationIssue] = []

    if not isinstance(document, dict):
        errors.append(ValidationIssue((), "Metadata must be an object"))
        return ValidationResult(valid=False, errors=errors)

    for key in REQUIRED_FIELDS:
        if _is_blank(document.get(key)):
            errors.append(ValidationIssue((key,), "Required property missing"))

    if not _is_blank(document.get("atip")):
        _check_atip(document["atip"], errors)
    for key in ("name", "version", "description"):
        value = document.get(key)
        if not _is_blank(value) and not isinstance(value, str):
            errors.append(ValidationIssue((key,), "Must be a string"))

    if "commands" in document:
        _check_commands(document["commands"], ("commands",), errors)

    return ValidationResult(valid=not errors, errors=errors)


def validate_file(path: Path) -> ValidationResult:
    """Load a JSON file and validate it as a manifest.

    Unreadable files and invalid JSON produce an invalid result with a
    single root-level issue instead of raising.
    """
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        return ValidationResult(
            valid=False, errors=[ValidationIssue((), f"Cannot read file: {exc}")]
        )
    except json.JSONDecodeError as exc:
        return ValidationResult(
            valid=False, errors=[ValidationIssue((), f"Invalid JSON: {exc}")]
        )
    return validate_metadata(document)
